# -*- coding: utf-8 -*-
"""
SQLAlchemy model for the Organization (tenant) record the billing engine reads.
"""
from sqlalchemy import Column, Integer, String, Numeric
from sqlalchemy.orm import relationship
from billing.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    # Ex: "2026-27"; when empty the year is derived from the payment date
    academic_year = Column(String(20), nullable=True)
    default_hourly_rate = Column(Numeric(12, 2), nullable=True)

    subjects = relationship("Subject", back_populates="organization")

    @property
    def receipt_prefix(self) -> str:
        name = (self.name or "").strip()
        return name[:3].upper() if name else "ORG"
