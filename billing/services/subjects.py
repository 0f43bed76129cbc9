# -*- coding: utf-8 -*-
"""
Obligations guard for removing (withdrawing) a subject.

A subject with open money is never removed; the caller receives the list of
blocking records instead. Withdrawing keeps the ledger intact: the subject is
marked expired and its active enrollments are cancelled.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from billing.database import atomic
from billing.errors import ActiveFinancialObligations, NotFound
from billing.models.enrollment import Enrollment, ENROLLMENT_ACTIVE, ENROLLMENT_CANCELLED
from billing.models.payment import Payment, PAYMENT_PENDING
from billing.models.plan import BillingPlan, PLAN_ACTIVE, PLAN_CANCELLED
from billing.models.schedule_item import ScheduleItem, ITEM_PENDING
from billing.models.subject import Subject, SUBJECT_EXPIRED
from billing.services.cache import report_cache
from billing.services.schedule import to_money

logger = logging.getLogger(__name__)


def find_financial_obligations(db: Session, organization_id: int, subject_id: int) -> dict:
    active_plans = db.query(BillingPlan).filter(
        BillingPlan.organization_id == organization_id,
        BillingPlan.subject_id == subject_id,
        BillingPlan.status == PLAN_ACTIVE
    ).order_by(BillingPlan.id).all()
    pending_items = db.query(ScheduleItem).join(BillingPlan).filter(
        BillingPlan.organization_id == organization_id,
        BillingPlan.subject_id == subject_id,
        BillingPlan.status != PLAN_CANCELLED,
        ScheduleItem.status == ITEM_PENDING
    ).order_by(ScheduleItem.due_date).all()
    pending_payments = db.query(Payment).filter(
        Payment.organization_id == organization_id,
        Payment.subject_id == subject_id,
        Payment.status == PAYMENT_PENDING
    ).order_by(Payment.id).all()

    outstanding = sum((item.amount for item in pending_items), Decimal("0"))
    # Pending payments tied to a pending item are already counted through the item
    outstanding += sum((p.amount for p in pending_payments if p.schedule_item_id is None), Decimal("0"))

    return {
        "active_plans": [
            {"plan_id": plan.id, "total_amount": str(to_money(plan.total_amount))} for plan in active_plans
        ],
        "pending_schedule_items": [
            {"schedule_item_id": item.id, "plan_id": item.plan_id,
             "due_date": item.due_date.isoformat(), "amount": str(to_money(item.amount))}
            for item in pending_items
        ],
        "pending_payments": [
            {"payment_id": p.id, "category": p.category, "amount": str(to_money(p.amount))}
            for p in pending_payments
        ],
        "total_outstanding": str(to_money(outstanding)),
    }


def has_obligations(obligations: dict) -> bool:
    return bool(obligations["active_plans"] or obligations["pending_schedule_items"]
                or obligations["pending_payments"])


def close_subject(db: Session, organization_id: int, subject_id: int) -> Subject:
    with atomic(db):
        subject = db.query(Subject).filter(
            Subject.id == subject_id,
            Subject.organization_id == organization_id
        ).with_for_update().first()
        if subject is None:
            raise NotFound("Subject not found", {"subject_id": subject_id})

        obligations = find_financial_obligations(db, organization_id, subject.id)
        if has_obligations(obligations):
            raise ActiveFinancialObligations(
                "Subject has open financial obligations and cannot be removed", obligations)

        subject.status = SUBJECT_EXPIRED
        db.query(Enrollment).filter(
            Enrollment.subject_id == subject.id,
            Enrollment.status == ENROLLMENT_ACTIVE
        ).update({Enrollment.status: ENROLLMENT_CANCELLED}, synchronize_session=False)

    report_cache.invalidate(organization_id)
    logger.info(f"Subject {subject_id} withdrawn")
    return subject
