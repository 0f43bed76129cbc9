# -*- coding: utf-8 -*-
"""
SQLAlchemy model for an AttendanceEvent of a usage-metered enrollment.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from billing.database import Base

BILLING_HOURLY = "hourly"
BILLING_HALF_DAY = "half-day"
BILLING_FULL_DAY = "full-day"


class AttendanceEvent(Base):
    __tablename__ = "attendance_events"

    id = Column(Integer, primary_key=True, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollments.id"), nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False)
    check_out_time = Column(DateTime, nullable=True)
    # Derived at check-out; a completed event is superseded, never edited
    duration_minutes = Column(Integer, nullable=True)
    billing_type = Column(String(20), nullable=True)
    corrects_event_id = Column(Integer, ForeignKey("attendance_events.id"), nullable=True)
    notes = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    enrollment = relationship("Enrollment", back_populates="attendance")
