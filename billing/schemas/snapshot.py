# -*- coding: utf-8 -*-
"""
Pydantic schemas for the derived financial snapshot.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel


class FinancialSnapshot(BaseModel):
    subject_id: int
    subject_name: Optional[str] = None
    program_class: Optional[str] = None
    as_of: date
    expected: Decimal
    collected_tuition: Decimal
    collected_additional: Decimal
    total_collected: Decimal
    total_discount: Decimal
    total_due: Decimal
    # Sum of the pending schedule items (what the installments still ask for)
    pending_schedule_amount: Decimal
    next_due_date: Optional[date] = None
    overdue_count: int
    status: str
    last_payment_date: Optional[date] = None
    payment_modes: Dict[str, Decimal] = {}


class DueReport(BaseModel):
    total: int
    snapshots: List[FinancialSnapshot]
