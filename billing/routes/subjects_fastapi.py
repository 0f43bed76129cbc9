# -*- coding: utf-8 -*-
"""
FastAPI routes for subject withdrawal.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing.auth import get_current_organization
from billing.database import get_db
from billing.errors import NotFound
from billing.models.subject import Subject
from billing.schemas.subject import SubjectRead
from billing.services import subjects as subject_service

router = APIRouter(
    tags=["Subjects"],
    responses={404: {"description": "Subject not found"}},
)


@router.get("/{subject_id}/obligations")
def read_obligations(
    subject_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    subject = db.query(Subject).filter(
        Subject.id == subject_id,
        Subject.organization_id == organization_id
    ).first()
    if subject is None:
        raise NotFound("Subject not found", {"subject_id": subject_id})
    return subject_service.find_financial_obligations(db, organization_id, subject.id)


@router.delete("/{subject_id}", response_model=SubjectRead)
def delete_subject(
    subject_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Withdraws the subject. Blocked with 409 and the list of open obligations
    while anything is still owed.
    """
    return subject_service.close_subject(db, organization_id, subject_id)
