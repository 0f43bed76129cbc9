# -*- coding: utf-8 -*-
"""
FastAPI routes for financial snapshots and the due report.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing.auth import get_current_organization
from billing.database import get_db
from billing.schemas.snapshot import DueReport, FinancialSnapshot
from billing.services import snapshot as snapshot_service

router = APIRouter(
    tags=["Snapshots"],
)


@router.get("/due-report", response_model=DueReport)
def read_due_report(
    status: Optional[str] = None,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Snapshot of every subject of the organization, highest due first.
    Optional filter by status (not_paid, pending, partially_paid, overdue, fully_paid).
    """
    snapshots = snapshot_service.get_due_report(db, organization_id, status=status, as_of=as_of)
    return {"total": len(snapshots), "snapshots": snapshots}


@router.get("/subjects/{subject_id}", response_model=FinancialSnapshot)
def read_subject_snapshot(
    subject_id: int,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return snapshot_service.get_financial_snapshot(db, organization_id, subject_id, as_of=as_of)
