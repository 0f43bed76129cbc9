# -*- coding: utf-8 -*-
"""
Pydantic schema for the result of a reconciliation pass.
"""

from datetime import date

from pydantic import BaseModel


class ReconciliationResult(BaseModel):
    run_date: date
    expiring: int = 0
    expired: int = 0
    due_today: int = 0
    overdue_subjects: int = 0
    overdue_follow_ups: int = 0
    notifications: int = 0
    failures: int = 0
