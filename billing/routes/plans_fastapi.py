# -*- coding: utf-8 -*-
"""
FastAPI routes for billing plans.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from billing.auth import get_current_organization
from billing.database import get_db
from billing.schemas.plan import PlanCreate, PlanProgress, PlanRead
from billing.services import plans as plan_service

router = APIRouter(
    tags=["Plans"],
    responses={404: {"description": "Plan not found"}},
)


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
def create_plan(
    plan: PlanCreate,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Creates a plan and its installment schedule. Fails with 409 when the
    subject already has an active plan.
    """
    return plan_service.create_plan(db, organization_id, plan)


@router.get("/{plan_id}", response_model=PlanRead)
def read_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return plan_service.get_plan(db, organization_id, plan_id)


@router.get("/{plan_id}/progress", response_model=PlanProgress)
def read_plan_progress(
    plan_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    return plan_service.get_plan_progress(db, organization_id, plan_id)


@router.post("/{plan_id}/cancel", response_model=PlanRead)
def cancel_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    """
    Cancels a plan. Plans with completed payments cannot be cancelled (409).
    """
    return plan_service.cancel_plan(db, organization_id, plan_id)


@router.post("/{plan_id}/check-completion")
def check_plan_completion(
    plan_id: int,
    db: Session = Depends(get_db),
    organization_id: int = Depends(get_current_organization)
):
    completed = plan_service.check_completion(db, organization_id, plan_id)
    return {"plan_id": plan_id, "completed": completed}
