# -*- coding: utf-8 -*-
"""
SQLAlchemy model for a scheduled follow-up (e.g. a daycare inquiry call-back).
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from billing.database import Base

FOLLOW_UP_PENDING = "pending"
FOLLOW_UP_COMPLETED = "completed"


class FollowUp(Base):
    __tablename__ = "follow_ups"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True, index=True)
    description = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=FOLLOW_UP_PENDING)
    assigned_to = Column(Integer, nullable=True)
