# -*- coding: utf-8 -*-
"""
Typed billing errors.

Services raise these before committing, so a failed operation never leaves a
partial write behind. The API layer renders them with a single exception
handler (see main.py) as ``{"code", "detail", "details"}``.
"""
from typing import Any, Dict, Optional

from fastapi import status


class BillingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BILLING_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "detail": self.message, "details": self.details}


# --- Bad input ---

class InvalidPlanParameters(BillingError):
    code = "INVALID_PLAN_PARAMETERS"


class InvalidPayment(BillingError):
    code = "INVALID_PAYMENT"


class InvalidAttendanceWindow(BillingError):
    code = "INVALID_ATTENDANCE_WINDOW"


# --- Conflicts ---

class DuplicateActivePlan(BillingError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_ACTIVE_PLAN"


class PlanHasPayments(BillingError):
    status_code = status.HTTP_409_CONFLICT
    code = "PLAN_HAS_PAYMENTS"


class ScheduleItemAlreadyPaid(BillingError):
    status_code = status.HTTP_409_CONFLICT
    code = "SCHEDULE_ITEM_ALREADY_PAID"


class ActiveFinancialObligations(BillingError):
    """
    Raised when a subject cannot be removed or cancelled because it still has
    active plans, unpaid schedule items or pending payments. ``details`` lists
    each blocking record so the caller can show a specific remediation.
    """
    status_code = status.HTTP_409_CONFLICT
    code = "ACTIVE_FINANCIAL_OBLIGATIONS"


# --- Lookup / context ---

class NotFound(BillingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Unauthorized(BillingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
