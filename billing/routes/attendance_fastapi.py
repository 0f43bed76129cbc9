# -*- coding: utf-8 -*-
"""
FastAPI routes for attendance (check-in/check-out) and usage billing.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from billing.auth import get_current_organization
from billing.database import get_db
from billing.schemas.attendance import (
    AttendanceCorrection, AttendanceRead, CheckInRequest, CheckOutRequest, UsageCharge
)
from billing.schemas.payment import PaymentRead
from billing.services import usage

router = APIRouter(
    tags=["Attendance"],
)


@router.post("/check-in", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
def check_in(
    request: CheckInRequest,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return usage.check_in(db, organization_id, request.enrollment_id, request.check_in_time, request.notes)


@router.post("/{attendance_id}/check-out", response_model=AttendanceRead)
def check_out(
    attendance_id: int,
    request: CheckOutRequest,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return usage.check_out(db, organization_id, attendance_id, request.check_out_time)


@router.post("/{attendance_id}/corrections", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
def correct_attendance(
    attendance_id: int,
    correction: AttendanceCorrection,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Supersedes a checked-out attendance with corrected times. The original
    event is kept for audit.
    """
    return usage.correct_attendance(db, organization_id, attendance_id,
                                    correction.check_in_time, correction.check_out_time, correction.notes)


@router.get("/enrollments/{enrollment_id}/usage", response_model=UsageCharge)
def read_usage_charge(
    enrollment_id: int,
    year: int,
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return usage.compute_usage_charge(db, organization_id, enrollment_id, year, month)


@router.post("/enrollments/{enrollment_id}/bill", response_model=Optional[PaymentRead])
def bill_usage_period(
    enrollment_id: int,
    year: int,
    month: int = Query(..., ge=1, le=12),
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return usage.bill_usage_period(db, organization_id, enrollment_id, year, month)
