# -*- coding: utf-8 -*-
"""
Payment Ledger.

Payments are append-only financial events. The only two mutations allowed are
issuing a missing receipt number and the pending -> completed transition.
A completed payment linked to a schedule item settles that item and re-checks
the plan completion in the same transaction, under the plan row lock.
"""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from billing.config import Config
from billing.database import atomic
from billing.errors import InvalidPayment, NotFound, ScheduleItemAlreadyPaid
from billing.models.organization import Organization
from billing.models.payment import (
    Payment, PAYMENT_CATEGORIES, PAYMENT_COMPLETED, PAYMENT_PENDING, CATEGORY_ADDITIONAL_CHARGE,
    CATEGORY_TUITION, CATEGORY_USAGE_CHARGE,
)
from billing.models.plan import BillingPlan, PLAN_ACTIVE, PLAN_USAGE
from billing.models.schedule_item import ScheduleItem, ITEM_PAID
from billing.models.subject import Subject
from billing.schemas.payment import PaymentCreate
from billing.services.cache import report_cache
from billing.services.plans import apply_completion
from billing.services.schedule import to_money

logger = logging.getLogger(__name__)


# --- Receipt numbers ---

def academic_year_for(day: date, start_month: int = None) -> str:
    """Ex: with the year starting in April, 2026-05-10 -> "2026-27", 2027-02-01 -> "2026-27"."""
    start_month = start_month or Config.ACADEMIC_YEAR_START_MONTH
    first_year = day.year if day.month >= start_month else day.year - 1
    return f"{first_year}-{(first_year + 1) % 100:02d}"


def format_receipt_number(prefix: str, academic_year: str, payment_id: int) -> str:
    return f"{prefix}/{academic_year}/{payment_id:06d}"


def issue_receipt(db: Session, payment_id: int, organization_id: int = None) -> str:
    """
    Returns the payment's receipt number, issuing it on first call.

    The number depends only on data that never changes after the payment is
    persisted, and it is written with ``UPDATE ... WHERE receipt_number IS NULL``,
    so retries and concurrent callers always end up with the same number.
    """
    query = db.query(Payment).filter(Payment.id == payment_id)
    if organization_id is not None:
        query = query.filter(Payment.organization_id == organization_id)
    payment = query.first()
    if payment is None:
        raise NotFound("Payment not found", {"payment_id": payment_id})
    if payment.receipt_number:
        return payment.receipt_number

    organization = db.get(Organization, payment.organization_id)
    prefix = organization.receipt_prefix if organization else "ORG"
    academic_year = (organization.academic_year if organization else None) or academic_year_for(payment.payment_date)
    receipt_number = format_receipt_number(prefix, academic_year, payment.id)

    with atomic(db):
        db.query(Payment).filter(
            Payment.id == payment.id,
            Payment.receipt_number.is_(None)
        ).update({Payment.receipt_number: receipt_number}, synchronize_session=False)

    db.refresh(payment)
    return payment.receipt_number


def issue_receipt_quietly(db: Session, payment: Payment):
    # The payment is already committed; a missing receipt is repaired by the backfill
    try:
        issue_receipt(db, payment.id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Receipt not issued for payment {payment.id}, left for backfill: {e}")


def backfill_missing_receipts(db: Session, organization_id: int = None) -> dict:
    query = db.query(Payment.id).filter(Payment.receipt_number.is_(None))
    if organization_id is not None:
        query = query.filter(Payment.organization_id == organization_id)
    payment_ids = [row.id for row in query.order_by(Payment.id).all()]

    issued = failed = 0
    for payment_id in payment_ids:
        try:
            issue_receipt(db, payment_id)
            issued += 1
        except SQLAlchemyError as e:
            db.rollback()
            failed += 1
            logger.error(f"Backfill failed for payment {payment_id}: {e}")

    logger.info(f"Receipt backfill: {len(payment_ids)} scanned, {issued} issued, {failed} failed")
    return {"scanned": len(payment_ids), "issued": issued, "failed": failed}


# --- Recording payments ---

def _lock_schedule_item(db: Session, organization_id: int, subject_id: int, item_id: int, amount: Decimal,
                        category: str) -> ScheduleItem:
    item = db.query(ScheduleItem).join(BillingPlan).filter(
        ScheduleItem.id == item_id,
        BillingPlan.organization_id == organization_id
    ).first()
    if item is None:
        raise NotFound("Schedule item not found", {"schedule_item_id": item_id})

    # The plan row is the serialization point between payments and the completion check
    plan = db.query(BillingPlan).filter(
        BillingPlan.id == item.plan_id
    ).with_for_update().populate_existing().one()
    item = db.query(ScheduleItem).filter(
        ScheduleItem.id == item_id
    ).with_for_update().populate_existing().one()

    if plan.subject_id != subject_id:
        raise InvalidPayment("Schedule item belongs to another subject",
                             {"schedule_item_id": item_id, "subject_id": subject_id})
    if plan.status != PLAN_ACTIVE:
        raise InvalidPayment("Schedule item belongs to a plan that is not active",
                             {"schedule_item_id": item_id, "plan_status": plan.status})
    # Tuition is what the snapshot counts against installment plans
    expected_category = CATEGORY_USAGE_CHARGE if plan.plan_type == PLAN_USAGE else CATEGORY_TUITION
    if category != expected_category:
        raise InvalidPayment(
            f"Schedule items of a {plan.plan_type} plan are settled by '{expected_category}' payments",
            {"schedule_item_id": item_id, "category": category, "expected_category": expected_category}
        )
    if item.status == ITEM_PAID:
        raise ScheduleItemAlreadyPaid("Schedule item is already paid",
                                      {"schedule_item_id": item_id, "paid_date": str(item.paid_date)})
    if amount != to_money(item.amount):
        raise InvalidPayment(
            "Payment amount must match the schedule item amount",
            {
                "schedule_item_id": item_id,
                "expected": str(to_money(item.amount)),
                "received": str(amount),
                "hint": f"record a partial amount as an unscheduled '{CATEGORY_ADDITIONAL_CHARGE}' payment",
            }
        )
    return item


def _settle_item(db: Session, item: ScheduleItem, payment: Payment):
    item.status = ITEM_PAID
    item.paid_date = payment.payment_date
    db.flush()
    apply_completion(db, item.plan)


def _find_by_transaction(db: Session, organization_id: int, transaction_id: str):
    return db.query(Payment).filter(
        Payment.organization_id == organization_id,
        Payment.transaction_id == transaction_id
    ).first()


def _replay(existing: Payment, subject_id: int, amount: Decimal) -> Payment:
    if existing.subject_id != subject_id or to_money(existing.amount) != amount:
        raise InvalidPayment(
            "Transaction id was already used for a different payment",
            {"transaction_id": existing.transaction_id, "payment_id": existing.id}
        )
    logger.info(f"Transaction {existing.transaction_id} already recorded as payment {existing.id}")
    return existing


def record_payment(db: Session, organization_id: int, payload: PaymentCreate) -> Payment:
    amount = to_money(payload.amount)
    if amount <= 0:
        raise InvalidPayment("Payment amount must be greater than zero", {"amount": str(amount)})
    discount = to_money(payload.discount or 0)
    if discount < 0:
        raise InvalidPayment("Discount cannot be negative", {"discount": str(discount)})
    if payload.category not in PAYMENT_CATEGORIES:
        raise InvalidPayment(f"Unknown payment category '{payload.category}'",
                             {"allowed": list(PAYMENT_CATEGORIES)})
    if payload.status not in (PAYMENT_PENDING, PAYMENT_COMPLETED):
        raise InvalidPayment(f"Unknown payment status '{payload.status}'",
                             {"allowed": [PAYMENT_PENDING, PAYMENT_COMPLETED]})

    subject = db.query(Subject).filter(
        Subject.id == payload.subject_id,
        Subject.organization_id == organization_id
    ).first()
    if subject is None:
        raise NotFound("Subject not found", {"subject_id": payload.subject_id})

    if payload.transaction_id:
        existing = _find_by_transaction(db, organization_id, payload.transaction_id)
        if existing is not None:
            return _replay(existing, subject.id, amount)

    try:
        with atomic(db):
            item = None
            if payload.schedule_item_id is not None:
                item = _lock_schedule_item(db, organization_id, subject.id, payload.schedule_item_id, amount,
                                          payload.category)

            payment = Payment(
                organization_id=organization_id,
                subject_id=subject.id,
                schedule_item_id=payload.schedule_item_id,
                amount=amount,
                discount=discount,
                payment_date=payload.payment_date or date.today(),
                mode=payload.mode,
                category=payload.category,
                transaction_id=payload.transaction_id,
                status=payload.status,
            )
            db.add(payment)
            db.flush()

            if item is not None and payment.status == PAYMENT_COMPLETED:
                _settle_item(db, item, payment)
    except IntegrityError:
        # Lost a race on the same transaction id: hand back the winner
        if payload.transaction_id:
            existing = _find_by_transaction(db, organization_id, payload.transaction_id)
            if existing is not None:
                return _replay(existing, subject.id, amount)
        raise

    db.refresh(payment)
    report_cache.invalidate(organization_id)
    logger.info(f"Payment {payment.id} recorded for subject {subject.id}: "
                f"{payment.amount} {payment.category} ({payment.status})")

    issue_receipt_quietly(db, payment)
    return payment


def complete_payment(db: Session, organization_id: int, payment_id: int) -> Payment:
    """Pending -> completed. Completing an already completed payment is a no-op."""
    with atomic(db):
        payment = db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.organization_id == organization_id
        ).with_for_update().populate_existing().first()
        if payment is None:
            raise NotFound("Payment not found", {"payment_id": payment_id})
        if payment.status == PAYMENT_COMPLETED:
            return payment

        item = None
        if payment.schedule_item_id is not None:
            item = _lock_schedule_item(db, organization_id, payment.subject_id,
                                       payment.schedule_item_id, to_money(payment.amount), payment.category)
        payment.status = PAYMENT_COMPLETED
        db.flush()
        if item is not None:
            _settle_item(db, item, payment)

    report_cache.invalidate(organization_id)
    logger.info(f"Payment {payment_id} completed")
    return payment


def list_payments(db: Session, organization_id: int, subject_id: int):
    return db.query(Payment).filter(
        Payment.organization_id == organization_id,
        Payment.subject_id == subject_id
    ).order_by(Payment.payment_date, Payment.id).all()
