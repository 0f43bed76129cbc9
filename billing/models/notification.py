# -*- coding: utf-8 -*-
"""
SQLAlchemy model backing the default Notification Sink.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from billing.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(20), nullable=False, default="medium")  # high, medium, low
    # "{subject_id}:{event_type}:{date}" - one notification per occurrence and day
    dedupe_key = Column(String(200), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)
