# -*- coding: utf-8 -*-
"""
Pydantic schemas for Subject.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class SubjectRead(BaseModel):
    id: int
    organization_id: int
    name: str
    program_class: Optional[str] = None
    status: str
    total_fee_override: Optional[Decimal] = None

    class Config:
        from_attributes = True
