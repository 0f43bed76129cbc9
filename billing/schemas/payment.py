# -*- coding: utf-8 -*-
"""
Pydantic schemas for the payment ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# Base schema for a payment
class PaymentBase(BaseModel):
    subject_id: int
    amount: Decimal
    mode: str = Field(..., max_length=20)
    category: str = Field("tuition", max_length=30)
    schedule_item_id: Optional[int] = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    discount: Decimal = Decimal("0")
    payment_date: Optional[date] = None


# Schema for recording a payment
class PaymentCreate(PaymentBase):
    status: str = Field("completed", max_length=20)


# Schema for reading a payment
class PaymentRead(PaymentBase):
    id: int
    organization_id: int
    payment_date: date
    status: str
    receipt_number: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReceiptRead(BaseModel):
    payment_id: int
    receipt_number: str


class BackfillResult(BaseModel):
    scanned: int
    issued: int
    failed: int
