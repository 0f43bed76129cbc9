# -*- coding: utf-8 -*-
"""
Pydantic schemas for attendance and usage billing.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CheckInRequest(BaseModel):
    enrollment_id: int
    check_in_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=255)


class CheckOutRequest(BaseModel):
    check_out_time: Optional[datetime] = None


class AttendanceCorrection(BaseModel):
    check_in_time: datetime
    check_out_time: datetime
    notes: Optional[str] = Field(None, max_length=255)


class AttendanceRead(BaseModel):
    id: int
    enrollment_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    billing_type: Optional[str] = None
    corrects_event_id: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class UsageCharge(BaseModel):
    enrollment_id: int
    period: str  # "YYYY-MM"
    events: int
    total_minutes: int
    total_hours: Decimal
    hourly_rate: Decimal
    amount: Decimal
