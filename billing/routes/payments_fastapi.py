# -*- coding: utf-8 -*-
"""
FastAPI routes for the payment ledger.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from billing.auth import get_current_organization
from billing.database import get_db
from billing.schemas.payment import BackfillResult, PaymentCreate, PaymentRead, ReceiptRead
from billing.services import ledger

router = APIRouter(
    tags=["Payments"],
)


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    payment: PaymentCreate,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Records a payment. When linked to a schedule item the amount must match
    the item exactly; a repeated transaction_id returns the original payment.
    """
    return ledger.record_payment(db, organization_id, payment)


@router.get("", response_model=List[PaymentRead])
def read_payments(
    subject_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return ledger.list_payments(db, organization_id, subject_id)


@router.post("/{payment_id}/complete", response_model=PaymentRead)
def complete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return ledger.complete_payment(db, organization_id, payment_id)


@router.post("/{payment_id}/receipt", response_model=ReceiptRead)
def issue_receipt(
    payment_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Returns the receipt number of the payment, issuing it if still missing.
    Safe to call repeatedly.
    """
    receipt_number = ledger.issue_receipt(db, payment_id, organization_id)
    return {"payment_id": payment_id, "receipt_number": receipt_number}


@router.post("/receipts/backfill", response_model=BackfillResult)
def backfill_receipts(
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return ledger.backfill_missing_receipts(db, organization_id)
