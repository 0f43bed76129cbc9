# -*- coding: utf-8 -*-
"""
SQLAlchemy model for a billable Subject (student or daycare child).
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from billing.database import Base

SUBJECT_ACTIVE = "active"
SUBJECT_ENROLLED = "enrolled"
SUBJECT_EXPIRED = "expired"


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    program_class = Column(String(50), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=SUBJECT_ACTIVE)
    # Custom fee agreed for this subject; takes precedence over the class catalog
    total_fee_override = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    organization = relationship("Organization", back_populates="subjects")
    plans = relationship("BillingPlan", back_populates="subject")
    payments = relationship("Payment", back_populates="subject")
    enrollments = relationship("Enrollment", back_populates="subject")
