# -*- coding: utf-8 -*-
"""
Usage Billing Calculator for enrollments billed by elapsed attendance time.

A checked-out attendance event is never edited. Fixing a wrong check-in or
check-out inserts a correction event (``corrects_event_id``) that supersedes
the original, and only the latest event of each chain is billed.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from billing.config import Config
from billing.database import atomic
from billing.errors import InvalidAttendanceWindow, InvalidPlanParameters, NotFound
from billing.models.attendance import AttendanceEvent, BILLING_FULL_DAY, BILLING_HALF_DAY, BILLING_HOURLY
from billing.models.enrollment import Enrollment, ENROLLMENT_ACTIVE
from billing.models.organization import Organization
from billing.models.payment import CATEGORY_USAGE_CHARGE, PAYMENT_PENDING
from billing.schemas.payment import PaymentCreate
from billing.services.ledger import record_payment
from billing.services.schedule import CENT, to_money

logger = logging.getLogger(__name__)

HALF_DAY_MINUTES = 4 * 60
FULL_DAY_MINUTES = 8 * 60


def as_naive_utc(value: datetime) -> datetime:
    """Attendance times are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def attendance_duration_minutes(check_in_time: datetime, check_out_time: datetime) -> int:
    if check_out_time < check_in_time:
        raise InvalidAttendanceWindow(
            "Check-out cannot be before check-in",
            {"check_in_time": check_in_time.isoformat(), "check_out_time": check_out_time.isoformat()}
        )
    return int((check_out_time - check_in_time).total_seconds() // 60)


def classify_billing_type(duration_minutes: int) -> str:
    if duration_minutes >= FULL_DAY_MINUTES:
        return BILLING_FULL_DAY
    if duration_minutes >= HALF_DAY_MINUTES:
        return BILLING_HALF_DAY
    return BILLING_HOURLY


def effective_events(events: Iterable[AttendanceEvent]) -> List[AttendanceEvent]:
    """Checked-out events that no correction supersedes."""
    events = list(events)
    superseded = {e.corrects_event_id for e in events if e.corrects_event_id is not None}
    return [e for e in events if e.id not in superseded and e.check_out_time is not None]


def _get_enrollment(db: Session, organization_id: int, enrollment_id: int, lock: bool = False) -> Enrollment:
    query = db.query(Enrollment).filter(
        Enrollment.id == enrollment_id,
        Enrollment.organization_id == organization_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    enrollment = query.first()
    if enrollment is None:
        raise NotFound("Enrollment not found", {"enrollment_id": enrollment_id})
    return enrollment


def _get_event(db: Session, organization_id: int, attendance_id: int, lock: bool = False) -> AttendanceEvent:
    query = db.query(AttendanceEvent).join(Enrollment).filter(
        AttendanceEvent.id == attendance_id,
        Enrollment.organization_id == organization_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    event = query.first()
    if event is None:
        raise NotFound("Attendance event not found", {"attendance_id": attendance_id})
    return event


def check_in(db: Session, organization_id: int, enrollment_id: int,
             at: datetime = None, notes: str = None) -> AttendanceEvent:
    with atomic(db):
        # The enrollment row lock serializes check-ins of the same enrollment
        enrollment = _get_enrollment(db, organization_id, enrollment_id, lock=True)
        if enrollment.status != ENROLLMENT_ACTIVE:
            raise InvalidAttendanceWindow("Enrollment is not active",
                                          {"enrollment_id": enrollment.id, "status": enrollment.status})

        open_event = db.query(AttendanceEvent).filter(
            AttendanceEvent.enrollment_id == enrollment.id,
            AttendanceEvent.check_out_time.is_(None)
        ).first()
        if open_event is not None:
            raise InvalidAttendanceWindow("Subject is already checked in",
                                          {"attendance_id": open_event.id})

        event = AttendanceEvent(
            enrollment_id=enrollment.id,
            check_in_time=as_naive_utc(at) or datetime.utcnow(),
            notes=notes,
        )
        db.add(event)
        db.flush()

    db.refresh(event)
    logger.info(f"Check-in {event.id} for enrollment {enrollment_id}")
    return event


def check_out(db: Session, organization_id: int, attendance_id: int, at: datetime = None) -> AttendanceEvent:
    with atomic(db):
        event = _get_event(db, organization_id, attendance_id, lock=True)
        if event.check_out_time is not None:
            raise InvalidAttendanceWindow("Attendance already checked out; record a correction instead",
                                          {"attendance_id": event.id})
        check_out_time = as_naive_utc(at) or datetime.utcnow()
        minutes = attendance_duration_minutes(event.check_in_time, check_out_time)
        event.check_out_time = check_out_time
        event.duration_minutes = minutes
        event.billing_type = classify_billing_type(minutes)

    db.refresh(event)
    logger.info(f"Check-out {event.id}: {event.duration_minutes} min ({event.billing_type})")
    return event


def correct_attendance(db: Session, organization_id: int, attendance_id: int,
                       check_in_time: datetime, check_out_time: datetime, notes: str = None) -> AttendanceEvent:
    check_in_time, check_out_time = as_naive_utc(check_in_time), as_naive_utc(check_out_time)
    minutes = attendance_duration_minutes(check_in_time, check_out_time)

    with atomic(db):
        original = _get_event(db, organization_id, attendance_id, lock=True)
        if original.check_out_time is None:
            raise InvalidAttendanceWindow("Open attendance cannot be corrected, check out first",
                                          {"attendance_id": original.id})
        newer = db.query(AttendanceEvent.id).filter(AttendanceEvent.corrects_event_id == original.id).first()
        if newer is not None:
            raise InvalidAttendanceWindow("Attendance was already corrected",
                                          {"attendance_id": original.id, "superseded_by": newer.id})

        correction = AttendanceEvent(
            enrollment_id=original.enrollment_id,
            check_in_time=check_in_time,
            check_out_time=check_out_time,
            duration_minutes=minutes,
            billing_type=classify_billing_type(minutes),
            corrects_event_id=original.id,
            notes=notes,
        )
        db.add(correction)
        db.flush()

    db.refresh(correction)
    logger.info(f"Attendance {attendance_id} corrected by {correction.id}")
    return correction


def resolve_hourly_rate(enrollment: Enrollment, organization: Organization = None) -> Decimal:
    candidates = [
        enrollment.custom_hourly_rate,
        enrollment.plan.hourly_rate if enrollment.plan is not None else None,
        organization.default_hourly_rate if organization is not None else None,
        Config.DEFAULT_HOURLY_RATE,
    ]
    for rate in candidates:
        if rate is not None and rate > 0:
            return to_money(rate)
    raise InvalidPlanParameters("No hourly rate configured for enrollment",
                                {"enrollment_id": enrollment.id})


def _month_bounds(year: int, month: int):
    if not 1 <= month <= 12:
        raise InvalidAttendanceWindow("Invalid billing month", {"year": year, "month": month})
    start = datetime(year, month, 1)
    return start, start + relativedelta(months=1)


def compute_usage_charge(db: Session, organization_id: int, enrollment_id: int, year: int, month: int) -> dict:
    """
    (sum of the month's effective durations, in hours) x hourly rate.

    Ex: two events of 3h and 2h at 100/h -> 500.00.
    """
    start, end = _month_bounds(year, month)
    enrollment = _get_enrollment(db, organization_id, enrollment_id)
    organization = db.get(Organization, organization_id)
    rate = resolve_hourly_rate(enrollment, organization)

    events = [e for e in effective_events(enrollment.attendance) if start <= e.check_in_time < end]
    total_minutes = sum(e.duration_minutes or 0 for e in events)
    hours = Decimal(total_minutes) / Decimal(60)

    return {
        "enrollment_id": enrollment.id,
        "period": f"{year:04d}-{month:02d}",
        "events": len(events),
        "total_minutes": total_minutes,
        "total_hours": hours.quantize(CENT),
        "hourly_rate": rate,
        "amount": to_money(hours * rate),
    }


def bill_usage_period(db: Session, organization_id: int, enrollment_id: int, year: int, month: int):
    """
    Records the month's usage as a pending ``usage_charge`` payment. The
    transaction id is derived from the enrollment and period, so billing the
    same month twice returns the first payment.
    """
    charge = compute_usage_charge(db, organization_id, enrollment_id, year, month)
    if charge["amount"] <= 0:
        logger.info(f"No usage to bill for enrollment {enrollment_id} in {charge['period']}")
        return None

    enrollment = _get_enrollment(db, organization_id, enrollment_id)
    _, end = _month_bounds(year, month)
    payload = PaymentCreate(
        subject_id=enrollment.subject_id,
        amount=charge["amount"],
        mode="invoice",
        category=CATEGORY_USAGE_CHARGE,
        transaction_id=f"usage-{enrollment.id}-{charge['period']}",
        status=PAYMENT_PENDING,
        payment_date=(end - relativedelta(days=1)).date(),
    )
    return record_payment(db, organization_id, payload)
