# -*- coding: utf-8 -*-
"""
Plan Lifecycle Manager.

Owns the "one active plan per subject" rule and the plan status transitions
(active -> completed when every installment is paid, active -> cancelled when
no money was collected against it).
"""
import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing.database import atomic
from billing.errors import DuplicateActivePlan, InvalidPlanParameters, NotFound, PlanHasPayments
from billing.models.payment import Payment, CATEGORY_REGISTRATION, PAYMENT_COMPLETED, PAYMENT_PENDING
from billing.models.plan import BillingPlan, PLAN_ACTIVE, PLAN_CANCELLED, PLAN_COMPLETED, PLAN_INSTALLMENT, PLAN_USAGE
from billing.models.schedule_item import ScheduleItem, ITEM_PAID, ITEM_PENDING
from billing.models.subject import Subject
from billing.schemas.plan import PlanCreate
from billing.services.cache import report_cache
from billing.services.schedule import CENT, generate_schedule, generate_usage_schedule, to_money

logger = logging.getLogger(__name__)


def get_active_plan(db: Session, subject_id: int):
    return db.query(BillingPlan).filter(
        BillingPlan.subject_id == subject_id,
        BillingPlan.status == PLAN_ACTIVE
    ).first()


def get_plan(db: Session, organization_id: int, plan_id: int) -> BillingPlan:
    plan = db.query(BillingPlan).filter(
        BillingPlan.id == plan_id,
        BillingPlan.organization_id == organization_id
    ).first()
    if plan is None:
        raise NotFound("Plan not found", {"plan_id": plan_id})
    return plan


def lock_plan(db: Session, organization_id: int, plan_id: int) -> BillingPlan:
    """Loads the plan with a row lock (SELECT ... FOR UPDATE) and fresh state."""
    plan = db.query(BillingPlan).filter(
        BillingPlan.id == plan_id,
        BillingPlan.organization_id == organization_id
    ).with_for_update().populate_existing().first()
    if plan is None:
        raise NotFound("Plan not found", {"plan_id": plan_id})
    return plan


def _build_schedule(payload: PlanCreate):
    if payload.plan_type == PLAN_INSTALLMENT:
        return generate_schedule(payload.total_amount, payload.installment_count,
                                 payload.start_date, payload.end_date, payload.frequency)
    if payload.plan_type == PLAN_USAGE:
        return generate_usage_schedule(payload.hourly_rate, payload.committed_hours,
                                       payload.start_date, payload.end_date,
                                       payload.installment_count, payload.frequency)
    raise InvalidPlanParameters(f"Unknown plan type '{payload.plan_type}'",
                                {"allowed": [PLAN_INSTALLMENT, PLAN_USAGE]})


def create_plan(db: Session, organization_id: int, payload: PlanCreate) -> BillingPlan:
    """
    Creates a plan and its schedule in a single transaction.

    The subject row is locked before the duplicate check, so two concurrent
    requests for the same subject are serialized; the partial unique index on
    active plans catches anything that still slips through.
    """
    # Bad input is rejected before touching the database
    lines = _build_schedule(payload)
    registration_fee = None
    if payload.registration_fee is not None:
        registration_fee = to_money(payload.registration_fee)
        if registration_fee <= 0:
            raise InvalidPlanParameters("Registration fee must be greater than zero",
                                        {"registration_fee": str(registration_fee)})

    total_amount = sum((line.amount for line in lines), Decimal("0"))

    try:
        with atomic(db):
            subject = db.query(Subject).filter(
                Subject.id == payload.subject_id,
                Subject.organization_id == organization_id
            ).with_for_update().first()
            if subject is None:
                raise NotFound("Subject not found", {"subject_id": payload.subject_id})

            active = get_active_plan(db, subject.id)
            if active is not None:
                raise DuplicateActivePlan("Subject already has an active plan",
                                          {"subject_id": subject.id, "active_plan_id": active.id})

            plan = BillingPlan(
                organization_id=organization_id,
                subject_id=subject.id,
                plan_type=payload.plan_type,
                total_amount=total_amount,
                installment_count=len(lines),
                installment_amount=lines[0].amount,
                frequency=payload.frequency,
                hourly_rate=payload.hourly_rate,
                committed_hours=payload.committed_hours,
                start_date=payload.start_date,
                end_date=payload.end_date,
                status=PLAN_ACTIVE,
            )
            plan.schedule_items = [
                ScheduleItem(sequence_number=line.sequence_number, due_date=line.due_date,
                             amount=line.amount, status=ITEM_PENDING)
                for line in lines
            ]
            db.add(plan)

            registration = None
            if registration_fee is not None:
                # "Initial bill": stays pending until the family pays it
                registration = Payment(
                    organization_id=organization_id,
                    subject_id=subject.id,
                    amount=registration_fee,
                    discount=Decimal("0"),
                    payment_date=payload.start_date,
                    mode=payload.registration_mode,
                    category=CATEGORY_REGISTRATION,
                    status=PAYMENT_PENDING,
                )
                db.add(registration)
            db.flush()
    except IntegrityError:
        logger.warning(f"Concurrent active plan detected for subject {payload.subject_id}")
        raise DuplicateActivePlan("Subject already has an active plan", {"subject_id": payload.subject_id})

    db.refresh(plan)
    report_cache.invalidate(organization_id)
    logger.info(f"Plan {plan.id} created for subject {plan.subject_id}: "
                f"{plan.installment_count} x {plan.installment_amount} ({plan.total_amount})")

    if registration is not None:
        from billing.services.ledger import issue_receipt_quietly
        issue_receipt_quietly(db, registration)
    return plan


def cancel_plan(db: Session, organization_id: int, plan_id: int) -> BillingPlan:
    with atomic(db):
        plan = lock_plan(db, organization_id, plan_id)
        if plan.status == PLAN_CANCELLED:
            return plan

        count, collected = db.query(
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount), 0)
        ).select_from(Payment).join(ScheduleItem, Payment.schedule_item_id == ScheduleItem.id).filter(
            ScheduleItem.plan_id == plan.id,
            Payment.status == PAYMENT_COMPLETED
        ).one()
        if count:
            raise PlanHasPayments(
                "Plan has completed payments and cannot be cancelled",
                {"plan_id": plan.id, "completed_payments": count, "collected": str(to_money(collected))}
            )
        plan.status = PLAN_CANCELLED

    report_cache.invalidate(organization_id)
    logger.info(f"Plan {plan_id} cancelled")
    return plan


def apply_completion(db: Session, plan: BillingPlan) -> bool:
    """
    Moves an active plan to completed when every item is paid. Must run inside
    the caller's transaction while it holds the plan row lock.
    """
    items = plan.schedule_items
    completed = bool(items) and all(item.status == ITEM_PAID for item in items)
    if completed and plan.status == PLAN_ACTIVE:
        plan.status = PLAN_COMPLETED
        db.flush()
        logger.info(f"Plan {plan.id} completed")
    return completed


def check_completion(db: Session, organization_id: int, plan_id: int) -> bool:
    with atomic(db):
        plan = lock_plan(db, organization_id, plan_id)
        completed = apply_completion(db, plan)
    return completed


def get_plan_progress(db: Session, organization_id: int, plan_id: int) -> dict:
    plan = get_plan(db, organization_id, plan_id)
    items = plan.schedule_items
    paid = [item for item in items if item.status == ITEM_PAID]
    pending = sorted((item for item in items if item.status == ITEM_PENDING),
                     key=lambda item: (item.due_date, item.sequence_number))

    total_paid = sum((item.amount for item in paid), Decimal("0"))
    total_amount = to_money(plan.total_amount)
    percentage = Decimal("0")
    if total_amount > 0:
        percentage = (total_paid * 100 / total_amount).quantize(CENT)

    return {
        "plan_id": plan.id,
        "status": plan.status,
        "total_amount": total_amount,
        "total_paid": to_money(total_paid),
        "remaining_amount": to_money(total_amount - total_paid),
        "paid_installments": len(paid),
        "total_installments": len(items),
        "next_installment": pending[0].sequence_number if pending else None,
        "completion_percentage": percentage,
        "is_completed": plan.status == PLAN_COMPLETED,
        "pending_items": pending,
    }
