# -*- coding: utf-8 -*-
"""
SQLAlchemy model for a usage-metered Enrollment (daycare billed by the hour).
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from billing.database import Base

ENROLLMENT_ACTIVE = "active"
ENROLLMENT_EXPIRED = "expired"
ENROLLMENT_CANCELLED = "cancelled"


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("billing_plans.id"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    custom_hourly_rate = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=ENROLLMENT_ACTIVE)
    created_at = Column(DateTime, default=datetime.utcnow)

    subject = relationship("Subject", back_populates="enrollments")
    plan = relationship("BillingPlan")
    attendance = relationship("AttendanceEvent", back_populates="enrollment", order_by="AttendanceEvent.check_in_time")
