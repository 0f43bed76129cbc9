# -*- coding: utf-8 -*-
"""
SQLAlchemy model for a ScheduleItem: one due obligation of a BillingPlan.
"""
from sqlalchemy import Column, Integer, String, Numeric, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from billing.database import Base

ITEM_PENDING = "pending"
ITEM_PAID = "paid"


class ScheduleItem(Base):
    __tablename__ = "schedule_items"
    __table_args__ = (
        UniqueConstraint("plan_id", "sequence_number", name="uq_schedule_items_plan_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("billing_plans.id"), nullable=False, index=True)
    sequence_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ITEM_PENDING)
    paid_date = Column(Date, nullable=True)

    plan = relationship("BillingPlan", back_populates="schedule_items")
    payments = relationship("Payment", back_populates="schedule_item")
