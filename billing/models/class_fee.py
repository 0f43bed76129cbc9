# -*- coding: utf-8 -*-
"""
SQLAlchemy model for the per-class fee catalog.
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey
from billing.database import Base


class ClassFee(Base):
    __tablename__ = "class_fees"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    class_name = Column(String(50), nullable=False, index=True)
    fee_type = Column(String(50), nullable=False)  # tuition, admission, library...
    amount = Column(Numeric(12, 2), nullable=False)
    frequency = Column(String(20), nullable=False, default="yearly")  # monthly, quarterly, yearly, one-time
    is_active = Column(Boolean, default=True)
