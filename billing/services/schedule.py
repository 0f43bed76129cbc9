# -*- coding: utf-8 -*-
"""
Schedule generation for billing plans.

Turns plan parameters into an ordered list of installments whose amounts add up
to the plan total to the cent: every installment is rounded down and the last
one absorbs the remainder.
"""
from collections import namedtuple
from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from billing.errors import InvalidPlanParameters

CENT = Decimal("0.01")

FREQUENCY_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}

ScheduleLine = namedtuple("ScheduleLine", ["sequence_number", "due_date", "amount"])


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value.quantize(CENT)
    if isinstance(value, float):
        # floats come from loose callers only; go through str to avoid binary noise
        value = str(value)
    return Decimal(value).quantize(CENT)


def months_spanned(start_date: date, end_date: date) -> int:
    """Number of calendar months touched by [start_date, end_date)."""
    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    if end_date.day > start_date.day:
        months += 1
    return max(months, 1)


def usage_plan_total(hourly_rate, committed_hours) -> Decimal:
    if hourly_rate is None or committed_hours is None:
        raise InvalidPlanParameters("Usage plans need an hourly rate and committed hours")
    rate = Decimal(str(hourly_rate))
    hours = Decimal(str(committed_hours))
    if rate <= 0:
        raise InvalidPlanParameters("Hourly rate must be greater than zero", {"hourly_rate": str(rate)})
    if hours <= 0:
        raise InvalidPlanParameters("Committed hours must be greater than zero", {"committed_hours": str(hours)})
    return to_money(rate * hours)


def validate_plan_parameters(total_amount: Decimal, installment_count: int,
                             start_date: date, end_date: date, frequency: str):
    if total_amount is None or total_amount <= 0:
        raise InvalidPlanParameters("Total amount must be greater than zero",
                                    {"total_amount": str(total_amount)})
    if installment_count is None or installment_count <= 0:
        raise InvalidPlanParameters("Installment count must be greater than zero",
                                    {"installment_count": installment_count})
    if start_date is None or end_date is None or end_date <= start_date:
        raise InvalidPlanParameters("End date must be after start date",
                                    {"start_date": str(start_date), "end_date": str(end_date)})
    if frequency not in FREQUENCY_MONTHS:
        raise InvalidPlanParameters(f"Unknown frequency '{frequency}'",
                                    {"allowed": sorted(FREQUENCY_MONTHS)})
    if total_amount < CENT * installment_count:
        raise InvalidPlanParameters("Total amount is too small for the number of installments",
                                    {"total_amount": str(total_amount), "installment_count": installment_count})


def generate_schedule(total_amount, installment_count: int, start_date: date, end_date: date,
                      frequency: str = "monthly") -> List[ScheduleLine]:
    total = to_money(total_amount) if total_amount is not None else None
    validate_plan_parameters(total, installment_count, start_date, end_date, frequency)

    step = FREQUENCY_MONTHS[frequency]
    base_amount = (total / installment_count).quantize(CENT, rounding=ROUND_DOWN)

    lines = []
    for index in range(installment_count):
        # always offset from the start date so month-end dates clamp but don't drift
        due_date = start_date + relativedelta(months=index * step)
        lines.append(ScheduleLine(index + 1, due_date, base_amount))

    remainder = total - base_amount * installment_count
    if remainder:
        last = lines[-1]
        lines[-1] = last._replace(amount=last.amount + remainder)
    return lines


def generate_usage_schedule(hourly_rate, committed_hours, start_date: date, end_date: date,
                            installment_count: Optional[int] = None,
                            frequency: str = "monthly") -> List[ScheduleLine]:
    """
    Usage plans bill ``hourly_rate * committed_hours`` over the enrollment
    period, one installment per calendar month unless a count is given.
    """
    total = usage_plan_total(hourly_rate, committed_hours)
    if installment_count is None:
        if start_date is None or end_date is None or end_date <= start_date:
            raise InvalidPlanParameters("End date must be after start date",
                                        {"start_date": str(start_date), "end_date": str(end_date)})
        installment_count = months_spanned(start_date, end_date)
    return generate_schedule(total, installment_count, start_date, end_date, frequency)
