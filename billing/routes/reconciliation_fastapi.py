# -*- coding: utf-8 -*-
"""
Trigger for the daily reconciliation pass, called by the external scheduler.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing.auth import verify_cron_secret
from billing.database import get_db
from billing.schemas.reconciliation import ReconciliationResult
from billing.services.reconciliation import run_reconciliation_pass

router = APIRouter(
    tags=["Reconciliation"],
)


@router.post("/run", response_model=ReconciliationResult, dependencies=[Depends(verify_cron_secret)])
def run_reconciliation(run_date: Optional[date] = None, db: Session = Depends(get_db)):
    return run_reconciliation_pass(db, today=run_date)
