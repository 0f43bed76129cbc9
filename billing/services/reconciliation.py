# -*- coding: utf-8 -*-
"""
Reconciliation Job: the daily pass over enrollments, due and overdue
installments, and follow-ups.

Each subject is reconciled in its own transaction, so a failure only affects
that subject and the pass moves on. Every notification carries a dedupe key
built from subject, event type and run date, which makes running the pass
twice on the same day a no-op.
"""
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing.database import atomic
from billing.models.enrollment import Enrollment, ENROLLMENT_ACTIVE, ENROLLMENT_EXPIRED
from billing.models.follow_up import FollowUp, FOLLOW_UP_PENDING
from billing.models.plan import BillingPlan, PLAN_CANCELLED
from billing.models.schedule_item import ScheduleItem, ITEM_PENDING
from billing.models.subject import Subject, SUBJECT_EXPIRED
from billing.services.cache import report_cache
from billing.services.notifications import DatabaseNotificationSink, NotificationSink
from billing.services.schedule import to_money

logger = logging.getLogger(__name__)

EVENT_ENROLLMENT_EXPIRING = "enrollment_expiring"
EVENT_ENROLLMENT_EXPIRED = "enrollment_expired"
EVENT_PAYMENT_OVERDUE = "payment_overdue"
EVENT_PAYMENT_DUE = "payment_due_today"
EVENT_FOLLOW_UP_OVERDUE = "follow_up_overdue"


def dedupe_key(subject_id, event_type: str, day: date, occurrence_id: int = None) -> str:
    key = f"{subject_id}:{event_type}:{day.isoformat()}"
    if occurrence_id is not None:
        key = f"{key}:{occurrence_id}"
    return key


def _subjects_to_reconcile(db: Session, today: date):
    tomorrow = today + timedelta(days=1)
    start_of_day = datetime.combine(today, time.min)

    subject_ids = set()
    subject_ids.update(row.subject_id for row in db.query(Enrollment.subject_id).filter(
        Enrollment.status == ENROLLMENT_ACTIVE,
        Enrollment.end_date <= tomorrow
    ))
    subject_ids.update(row.subject_id for row in db.query(BillingPlan.subject_id).join(ScheduleItem).filter(
        BillingPlan.status != PLAN_CANCELLED,
        ScheduleItem.status == ITEM_PENDING,
        ScheduleItem.due_date <= today
    ))
    subject_ids.update(row.subject_id for row in db.query(FollowUp.subject_id).filter(
        FollowUp.status == FOLLOW_UP_PENDING,
        FollowUp.scheduled_at < start_of_day
    ))
    # None groups the follow-ups that have no subject
    return sorted(subject_ids, key=lambda value: (value is None, value or 0))


def _reconcile_enrollments(db, subject, today, sink, counts):
    tomorrow = today + timedelta(days=1)
    enrollments = db.query(Enrollment).filter(
        Enrollment.subject_id == subject.id,
        Enrollment.status == ENROLLMENT_ACTIVE
    ).with_for_update().all()

    expired_any = False
    for enrollment in enrollments:
        if enrollment.end_date == tomorrow:
            counts["expiring"] += 1
            if sink.create_notification(
                    subject.id, EVENT_ENROLLMENT_EXPIRING,
                    f"Enrollment of {subject.name} ends on {enrollment.end_date.isoformat()}",
                    priority="medium", organization_id=subject.organization_id,
                    dedupe_key=dedupe_key(subject.id, EVENT_ENROLLMENT_EXPIRING, today)):
                counts["notifications"] += 1
        elif enrollment.end_date < today:
            enrollment.status = ENROLLMENT_EXPIRED
            expired_any = True
            counts["expired"] += 1
            if sink.create_notification(
                    subject.id, EVENT_ENROLLMENT_EXPIRED,
                    f"Enrollment of {subject.name} expired on {enrollment.end_date.isoformat()}",
                    priority="high", organization_id=subject.organization_id,
                    dedupe_key=dedupe_key(subject.id, EVENT_ENROLLMENT_EXPIRED, today)):
                counts["notifications"] += 1

    if expired_any:
        still_active = any(e.status == ENROLLMENT_ACTIVE for e in enrollments)
        if not still_active:
            subject.status = SUBJECT_EXPIRED
    db.flush()


def _reconcile_schedule(db, subject, today, sink, counts):
    overdue = db.query(ScheduleItem).join(BillingPlan).filter(
        BillingPlan.subject_id == subject.id,
        BillingPlan.status != PLAN_CANCELLED,
        ScheduleItem.status == ITEM_PENDING,
        ScheduleItem.due_date < today
    ).order_by(ScheduleItem.due_date).all()
    if not overdue:
        return

    counts["overdue_subjects"] += 1
    amount = to_money(sum((item.amount for item in overdue), Decimal("0")))
    if sink.create_notification(
            subject.id, EVENT_PAYMENT_OVERDUE,
            f"{subject.name} has {len(overdue)} overdue installment(s) totalling {amount}, "
            f"oldest due on {overdue[0].due_date.isoformat()}",
            priority="high", organization_id=subject.organization_id,
            dedupe_key=dedupe_key(subject.id, EVENT_PAYMENT_OVERDUE, today)):
        counts["notifications"] += 1


def _reconcile_due_today(db, subject, today, sink, counts):
    due = db.query(ScheduleItem).join(BillingPlan).filter(
        BillingPlan.subject_id == subject.id,
        BillingPlan.status != PLAN_CANCELLED,
        ScheduleItem.status == ITEM_PENDING,
        ScheduleItem.due_date == today
    ).order_by(ScheduleItem.sequence_number).all()
    if not due:
        return

    counts["due_today"] += 1
    amount = to_money(sum((item.amount for item in due), Decimal("0")))
    if sink.create_notification(
            subject.id, EVENT_PAYMENT_DUE,
            f"Installment of {amount} for {subject.name} is due today ({today.isoformat()})",
            priority="high", organization_id=subject.organization_id,
            dedupe_key=dedupe_key(subject.id, EVENT_PAYMENT_DUE, today)):
        counts["notifications"] += 1


def _reconcile_follow_ups(db, subject_id, organization_id, today, sink, counts):
    follow_ups = db.query(FollowUp).filter(
        FollowUp.subject_id == subject_id if subject_id is not None else FollowUp.subject_id.is_(None),
        FollowUp.status == FOLLOW_UP_PENDING,
        FollowUp.scheduled_at < datetime.combine(today, time.min)
    ).order_by(FollowUp.scheduled_at).all()

    for follow_up in follow_ups:
        counts["overdue_follow_ups"] += 1
        if sink.create_notification(
                subject_id, EVENT_FOLLOW_UP_OVERDUE,
                f"Follow-up overdue since {follow_up.scheduled_at.date().isoformat()}: {follow_up.description}",
                priority="medium", organization_id=organization_id or follow_up.organization_id,
                dedupe_key=dedupe_key(subject_id, EVENT_FOLLOW_UP_OVERDUE, today, follow_up.id)):
            counts["notifications"] += 1


def reconcile_subject(db: Session, subject_id, today: date, sink: NotificationSink) -> dict:
    counts = {"expiring": 0, "expired": 0, "due_today": 0, "overdue_subjects": 0, "overdue_follow_ups": 0,
              "notifications": 0}
    if subject_id is None:
        _reconcile_follow_ups(db, None, None, today, sink, counts)
        return counts

    subject = db.get(Subject, subject_id)
    if subject is None:
        return counts
    _reconcile_enrollments(db, subject, today, sink, counts)
    _reconcile_due_today(db, subject, today, sink, counts)
    _reconcile_schedule(db, subject, today, sink, counts)
    _reconcile_follow_ups(db, subject.id, subject.organization_id, today, sink, counts)
    if counts["expired"]:
        report_cache.invalidate(subject.organization_id)
    return counts


def run_reconciliation_pass(db: Session, today: date = None, sink: NotificationSink = None) -> dict:
    today = today or date.today()
    sink = sink or DatabaseNotificationSink(db)
    result = {
        "run_date": today,
        "expiring": 0,
        "expired": 0,
        "due_today": 0,
        "overdue_subjects": 0,
        "overdue_follow_ups": 0,
        "notifications": 0,
        "failures": 0,
    }

    subject_ids = _subjects_to_reconcile(db, today)
    logger.info(f"Reconciliation for {today.isoformat()}: {len(subject_ids)} subject(s) to check")

    for subject_id in subject_ids:
        try:
            with atomic(db):
                counts = reconcile_subject(db, subject_id, today, sink)
        except SQLAlchemyError as e:
            result["failures"] += 1
            logger.error(f"Reconciliation failed for subject {subject_id}: {e}")
            continue
        for key, value in counts.items():
            result[key] += value

    logger.info(
        f"Reconciliation finished: {result['expiring']} expiring, {result['expired']} expired, "
        f"{result['due_today']} with installments due today, "
        f"{result['overdue_subjects']} with overdue installments, {result['overdue_follow_ups']} overdue follow-ups, "
        f"{result['notifications']} notification(s), {result['failures']} failure(s)"
    )
    return result
