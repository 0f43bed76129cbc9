# -*- coding: utf-8 -*-
"""
Pydantic schemas for BillingPlan and ScheduleItem.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# Base schema for a plan
class PlanBase(BaseModel):
    plan_type: str = Field("installment", max_length=20)
    # Amount and count are checked by the schedule generator, which reports
    # InvalidPlanParameters instead of a generic validation error
    total_amount: Optional[Decimal] = None
    installment_count: Optional[int] = None
    frequency: str = Field("monthly", max_length=20)
    hourly_rate: Optional[Decimal] = None
    committed_hours: Optional[Decimal] = None
    start_date: date
    end_date: date


# Schema for creating a plan
class PlanCreate(PlanBase):
    subject_id: int
    # Optional "initial bill": a pending registration-fee payment
    registration_fee: Optional[Decimal] = None
    registration_mode: str = Field("cash", max_length=20)


class ScheduleItemRead(BaseModel):
    id: int
    sequence_number: int
    due_date: date
    amount: Decimal
    status: str
    paid_date: Optional[date] = None

    class Config:
        from_attributes = True


# Schema for reading a plan
class PlanRead(PlanBase):
    id: int
    organization_id: int
    subject_id: int
    total_amount: Decimal
    installment_count: int
    installment_amount: Decimal
    status: str
    created_at: Optional[datetime] = None
    schedule_items: List[ScheduleItemRead] = []

    class Config:
        from_attributes = True


class PlanProgress(BaseModel):
    plan_id: int
    status: str
    total_amount: Decimal
    total_paid: Decimal
    remaining_amount: Decimal
    paid_installments: int
    total_installments: int
    next_installment: Optional[int] = None
    completion_percentage: Decimal
    is_completed: bool
    pending_items: List[ScheduleItemRead] = []
