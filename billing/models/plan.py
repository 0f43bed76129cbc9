# -*- coding: utf-8 -*-
"""
SQLAlchemy model for the BillingPlan (installment or usage-metered agreement).
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from billing.database import Base

PLAN_INSTALLMENT = "installment"
PLAN_USAGE = "usage"

PLAN_ACTIVE = "active"
PLAN_COMPLETED = "completed"
PLAN_CANCELLED = "cancelled"


class BillingPlan(Base):
    __tablename__ = "billing_plans"
    __table_args__ = (
        # At most one active plan per subject, beneath the locked check in services.plans
        Index(
            "uq_billing_plans_one_active_per_subject",
            "subject_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    plan_type = Column(String(20), nullable=False, default=PLAN_INSTALLMENT)
    total_amount = Column(Numeric(12, 2), nullable=False)
    installment_count = Column(Integer, nullable=False)
    installment_amount = Column(Numeric(12, 2), nullable=False)
    frequency = Column(String(20), nullable=False, default="monthly")
    hourly_rate = Column(Numeric(12, 2), nullable=True)
    committed_hours = Column(Numeric(8, 2), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=PLAN_ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subject = relationship("Subject", back_populates="plans")
    schedule_items = relationship(
        "ScheduleItem",
        back_populates="plan",
        order_by="ScheduleItem.due_date",
        cascade="all, delete-orphan",
    )
