# -*- coding: utf-8 -*-
"""
SQLAlchemy model for a Payment: an immutable financial event.

The only mutations a payment ever sees are the receipt number backfill and the
pending -> completed transition.
"""
from datetime import date, datetime

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from billing.database import Base

CATEGORY_TUITION = "tuition"
CATEGORY_REGISTRATION = "registration"
CATEGORY_USAGE_CHARGE = "usage_charge"
CATEGORY_ADDITIONAL_CHARGE = "additional_charge"

PAYMENT_CATEGORIES = (
    CATEGORY_TUITION,
    CATEGORY_REGISTRATION,
    CATEGORY_USAGE_CHARGE,
    CATEGORY_ADDITIONAL_CHARGE,
)
ADDITIONAL_CATEGORIES = (CATEGORY_REGISTRATION, CATEGORY_USAGE_CHARGE, CATEGORY_ADDITIONAL_CHARGE)

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("organization_id", "receipt_number", name="uq_payments_org_receipt"),
        UniqueConstraint("organization_id", "transaction_id", name="uq_payments_org_transaction"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    schedule_item_id = Column(Integer, ForeignKey("schedule_items.id"), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_date = Column(Date, nullable=False, default=date.today)
    mode = Column(String(20), nullable=False)  # cash, online, cheque, emi...
    category = Column(String(30), nullable=False, default=CATEGORY_TUITION)
    transaction_id = Column(String(100), nullable=True)
    receipt_number = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=PAYMENT_COMPLETED)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subject = relationship("Subject", back_populates="payments")
    schedule_item = relationship("ScheduleItem", back_populates="payments")
