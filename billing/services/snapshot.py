# -*- coding: utf-8 -*-
"""
Due & Status Aggregator.

``build_snapshot`` is a pure function of its inputs; the database helpers below
only gather those inputs (payments, schedule items, expected amount) and hand
them over.
"""
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from billing.errors import NotFound
from billing.models.payment import Payment, CATEGORY_TUITION, ADDITIONAL_CATEGORIES, PAYMENT_COMPLETED
from billing.models.plan import BillingPlan, PLAN_CANCELLED, PLAN_INSTALLMENT
from billing.models.schedule_item import ScheduleItem, ITEM_PENDING
from billing.models.subject import Subject
from billing.schemas.snapshot import FinancialSnapshot
from billing.services.cache import report_cache
from billing.services.catalog import ChargeCatalog, DatabaseChargeCatalog
from billing.services.schedule import to_money

logger = logging.getLogger(__name__)

STATUS_NOT_PAID = "not_paid"
STATUS_FULLY_PAID = "fully_paid"
STATUS_OVERDUE = "overdue"
STATUS_PARTIALLY_PAID = "partially_paid"
STATUS_PENDING = "pending"

ZERO = Decimal("0.00")


def derive_status(collected_tuition: Decimal, total_due: Decimal, overdue_count: int,
                  collected_additional: Decimal = ZERO) -> str:
    # Order matters: the first rule that matches wins
    if collected_tuition == 0 and collected_additional == 0:
        return STATUS_NOT_PAID
    if total_due == 0:
        return STATUS_FULLY_PAID
    if overdue_count > 0:
        return STATUS_OVERDUE
    if collected_tuition > 0 and total_due > 0:
        return STATUS_PARTIALLY_PAID
    return STATUS_PENDING


def subject_custom_amount(subject: Subject, plans: Iterable[BillingPlan]) -> Optional[Decimal]:
    """The fee agreed for this subject: explicit override, else its installment plans."""
    if subject.total_fee_override is not None:
        return to_money(subject.total_fee_override)
    installment_plans = [p for p in plans if p.plan_type == PLAN_INSTALLMENT and p.status != PLAN_CANCELLED]
    if not installment_plans:
        return None
    return to_money(sum((p.total_amount for p in installment_plans), Decimal("0")))


def compute_expected(custom_amount: Optional[Decimal], charges) -> Decimal:
    if custom_amount is not None and custom_amount > 0:
        return to_money(custom_amount)
    return to_money(sum((charge.amount for charge in charges), Decimal("0")))


def build_snapshot(subject_id: int, expected: Decimal, payments: Iterable[Payment],
                   schedule_items: Iterable[ScheduleItem], as_of: date,
                   subject_name: str = None, program_class: str = None) -> FinancialSnapshot:
    """
    Aggregates one subject's financial state.

    ``schedule_items`` must only contain items of non-cancelled plans; only
    completed payments count as collected money.
    """
    collected_tuition = collected_additional = total_discount = Decimal("0")
    payment_modes = defaultdict(Decimal)
    last_payment_date = None
    for payment in payments:
        if payment.status != PAYMENT_COMPLETED:
            continue
        amount = to_money(payment.amount)
        if payment.category == CATEGORY_TUITION:
            collected_tuition += amount
        elif payment.category in ADDITIONAL_CATEGORIES:
            collected_additional += amount
        total_discount += to_money(payment.discount or 0)
        payment_modes[payment.mode] += amount
        if last_payment_date is None or payment.payment_date > last_payment_date:
            last_payment_date = payment.payment_date

    pending = [item for item in schedule_items if item.status == ITEM_PENDING]
    next_due_date = min((item.due_date for item in pending), default=None)
    overdue_count = sum(1 for item in pending if item.due_date < as_of)
    pending_amount = sum((to_money(item.amount) for item in pending), Decimal("0"))

    expected = to_money(expected)
    # Additional charges are billed on top of tuition and never reduce the due amount
    total_due = max(ZERO, expected - collected_tuition)

    return FinancialSnapshot(
        subject_id=subject_id,
        subject_name=subject_name,
        program_class=program_class,
        as_of=as_of,
        expected=expected,
        collected_tuition=to_money(collected_tuition),
        collected_additional=to_money(collected_additional),
        total_collected=to_money(collected_tuition + collected_additional),
        total_discount=to_money(total_discount),
        total_due=to_money(total_due),
        pending_schedule_amount=to_money(pending_amount),
        next_due_date=next_due_date,
        overdue_count=overdue_count,
        status=derive_status(collected_tuition, total_due, overdue_count, collected_additional),
        last_payment_date=last_payment_date,
        payment_modes={mode: to_money(value) for mode, value in payment_modes.items()},
    )


def get_financial_snapshot(db: Session, organization_id: int, subject_id: int,
                           as_of: date = None, catalog: ChargeCatalog = None) -> FinancialSnapshot:
    as_of = as_of or date.today()
    catalog = catalog or DatabaseChargeCatalog(db)

    subject = db.query(Subject).filter(
        Subject.id == subject_id,
        Subject.organization_id == organization_id
    ).first()
    if subject is None:
        raise NotFound("Subject not found", {"subject_id": subject_id})

    payments = db.query(Payment).filter(
        Payment.organization_id == organization_id,
        Payment.subject_id == subject.id
    ).all()
    items = db.query(ScheduleItem).join(BillingPlan).filter(
        BillingPlan.subject_id == subject.id,
        BillingPlan.status != PLAN_CANCELLED
    ).order_by(ScheduleItem.due_date).all()

    charges = catalog.get_applicable_charges(organization_id, subject.program_class)
    expected = compute_expected(subject_custom_amount(subject, subject.plans), charges)
    return build_snapshot(subject.id, expected, payments, items, as_of,
                          subject_name=subject.name, program_class=subject.program_class)


def get_due_report(db: Session, organization_id: int, status: str = None,
                   as_of: date = None, catalog: ChargeCatalog = None) -> List[FinancialSnapshot]:
    """
    Snapshot of every subject of the organization, highest due first.

    Served from the per-organization report cache; any billing write for the
    organization drops the cached entries.
    """
    as_of = as_of or date.today()
    cache_key = ("due_report", as_of.isoformat())
    snapshots = report_cache.get(organization_id, cache_key) if catalog is None else None

    if snapshots is None:
        snapshots = _build_due_report(db, organization_id, as_of, catalog or DatabaseChargeCatalog(db))
        if catalog is None:
            report_cache.set(organization_id, cache_key, snapshots)
    else:
        logger.debug(f"Due report for organization {organization_id} served from cache")

    if status:
        return [s for s in snapshots if s.status == status]
    return list(snapshots)


def _build_due_report(db: Session, organization_id: int, as_of: date, catalog: ChargeCatalog):
    subjects = db.query(Subject).filter(Subject.organization_id == organization_id).all()

    payments_by_subject = defaultdict(list)
    for payment in db.query(Payment).filter(Payment.organization_id == organization_id):
        payments_by_subject[payment.subject_id].append(payment)

    plans_by_subject = defaultdict(list)
    for plan in db.query(BillingPlan).filter(BillingPlan.organization_id == organization_id):
        plans_by_subject[plan.subject_id].append(plan)

    items_by_subject = defaultdict(list)
    rows = db.query(ScheduleItem, BillingPlan.subject_id).join(BillingPlan).filter(
        BillingPlan.organization_id == organization_id,
        BillingPlan.status != PLAN_CANCELLED
    )
    for item, subject_id in rows:
        items_by_subject[subject_id].append(item)

    charges_by_class = {}
    snapshots = []
    for subject in subjects:
        if subject.program_class not in charges_by_class:
            charges_by_class[subject.program_class] = catalog.get_applicable_charges(
                organization_id, subject.program_class)
        expected = compute_expected(
            subject_custom_amount(subject, plans_by_subject[subject.id]),
            charges_by_class[subject.program_class]
        )
        snapshots.append(build_snapshot(
            subject.id, expected, payments_by_subject[subject.id], items_by_subject[subject.id], as_of,
            subject_name=subject.name, program_class=subject.program_class
        ))

    snapshots.sort(key=lambda s: (-s.total_due, s.subject_id))
    return snapshots
