# -*- coding: utf-8 -*-
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from billing.models.class_fee import ClassFee
from billing.models.payment import Payment
from billing.schemas.payment import PaymentCreate
from billing.services.catalog import ApplicableCharge
from billing.services.ledger import record_payment
from billing.services.plans import cancel_plan
from billing.services.snapshot import (
    build_snapshot, compute_expected, derive_status, get_due_report, get_financial_snapshot
)

D = Decimal


def paid(amount, category="tuition", status="completed", mode="cash", day=date(2026, 1, 5), discount="0"):
    return SimpleNamespace(amount=D(amount), category=category, status=status, mode=mode,
                           payment_date=day, discount=D(discount))


def item(due, amount="1000", status="pending"):
    return SimpleNamespace(due_date=due, amount=D(amount), status=status)


def pay_item(db, organization, subject, schedule_item):
    return record_payment(db, organization.id, PaymentCreate(
        subject_id=subject.id, amount=schedule_item.amount, mode="cash", schedule_item_id=schedule_item.id
    ))


# --- Pure rules ---

@pytest.mark.parametrize("tuition, due, overdue, additional, expected", [
    ("0", "6000", 0, "0", "not_paid"),
    ("0", "0", 2, "0", "not_paid"),
    ("6000", "0", 0, "0", "fully_paid"),
    ("6000", "0", 3, "0", "fully_paid"),
    ("1000", "5000", 1, "0", "overdue"),
    ("1000", "5000", 0, "0", "partially_paid"),
    ("0", "6000", 0, "150", "pending"),
    ("0", "6000", 1, "150", "overdue"),
])
def test_derive_status(tuition, due, overdue, additional, expected):
    assert derive_status(D(tuition), D(due), overdue, D(additional)) == expected


def test_compute_expected_prefers_custom_amount():
    charges = [ApplicableCharge("tuition", D("12000"), "yearly"), ApplicableCharge("library", D("500"), "yearly")]

    assert compute_expected(D("9000"), charges) == D("9000.00")
    assert compute_expected(None, charges) == D("12500.00")
    assert compute_expected(D("0"), charges) == D("12500.00")
    assert compute_expected(None, []) == D("0.00")


def test_build_snapshot_counts_completed_payments_only():
    snapshot = build_snapshot(
        1, D("6000"),
        [paid("1000"), paid("500", status="pending"), paid("200", category="additional_charge", mode="online")],
        [item(date(2026, 2, 10)), item(date(2026, 3, 10))],
        as_of=date(2026, 1, 20),
    )

    assert snapshot.collected_tuition == D("1000.00")
    assert snapshot.collected_additional == D("200.00")
    assert snapshot.total_collected == D("1200.00")
    # Additional charges do not reduce what is due
    assert snapshot.total_due == D("5000.00")
    assert snapshot.payment_modes == {"cash": D("1000.00"), "online": D("200.00")}
    assert snapshot.pending_schedule_amount == D("2000.00")


def test_overdue_uses_current_pending_items_only():
    items = [item(date(2026, 1, 10), status="paid"), item(date(2026, 2, 10))]

    snapshot = build_snapshot(1, D("2000"), [paid("1000")], items, as_of=date(2026, 2, 1))

    assert snapshot.overdue_count == 0
    assert snapshot.next_due_date == date(2026, 2, 10)
    assert snapshot.status == "partially_paid"


def test_fully_paid_even_with_stale_overdue_items():
    # A pending item left behind while tuition covers the whole expected amount
    snapshot = build_snapshot(1, D("1000"), [paid("1000")], [item(date(2026, 1, 1))], as_of=date(2026, 3, 1))

    assert snapshot.overdue_count == 1
    assert snapshot.total_due == D("0.00")
    assert snapshot.status == "fully_paid"


def test_overpayment_never_gives_negative_due():
    snapshot = build_snapshot(1, D("1000"), [paid("1500")], [], as_of=date(2026, 3, 1))

    assert snapshot.total_due == D("0.00")


def test_last_payment_date_and_discount():
    snapshot = build_snapshot(1, D("3000"), [
        paid("1000", day=date(2026, 1, 5), discount="50"),
        paid("1000", day=date(2026, 2, 5)),
    ], [], as_of=date(2026, 3, 1))

    assert snapshot.last_payment_date == date(2026, 2, 5)
    assert snapshot.total_discount == D("50.00")


# --- Scenarios over the database ---

def test_one_installment_paid(db, organization, subject, make_plan):
    plan = make_plan(subject)
    items = list(plan.schedule_items)
    pay_item(db, organization, subject, items[0])

    snapshot = get_financial_snapshot(db, organization.id, subject.id, as_of=date(2026, 1, 15))

    assert snapshot.expected == D("6000.00")
    assert snapshot.total_due == D("5000.00")
    assert snapshot.status == "partially_paid"
    assert snapshot.next_due_date == items[1].due_date
    assert snapshot.overdue_count == 0


def test_all_installments_paid(db, organization, subject, make_plan):
    plan = make_plan(subject)
    for schedule_item in list(plan.schedule_items):
        pay_item(db, organization, subject, schedule_item)

    db.refresh(plan)
    snapshot = get_financial_snapshot(db, organization.id, subject.id, as_of=date(2026, 9, 1))

    assert plan.status == "completed"
    assert snapshot.total_due == D("0.00")
    assert snapshot.status == "fully_paid"
    assert snapshot.next_due_date is None


def test_overdue_takes_precedence_over_partially_paid(db, organization, subject, make_plan):
    plan = make_plan(subject)
    items = list(plan.schedule_items)
    pay_item(db, organization, subject, items[0])

    # Installment #2 (2026-02-10) was due yesterday
    snapshot = get_financial_snapshot(db, organization.id, subject.id, as_of=date(2026, 2, 11))

    assert snapshot.overdue_count == 1
    assert snapshot.total_due > 0
    assert snapshot.status == "overdue"


def test_expected_from_catalog_when_no_custom_amount(db, organization, make_subject):
    db.add_all([
        ClassFee(organization_id=organization.id, class_name="Grade 1", fee_type="tuition", amount=D("12000")),
        ClassFee(organization_id=organization.id, class_name="Grade 1", fee_type="admission", amount=D("500")),
        ClassFee(organization_id=organization.id, class_name="Grade 1", fee_type="old", amount=D("99"),
                 is_active=False),
        ClassFee(organization_id=organization.id, class_name="Grade 2", fee_type="tuition", amount=D("15000")),
    ])
    db.commit()
    catalog_subject = make_subject(name="Catalog")
    override_subject = make_subject(name="Override", total_fee_override=D("9000"))

    assert get_financial_snapshot(db, organization.id, catalog_subject.id).expected == D("12500.00")
    assert get_financial_snapshot(db, organization.id, override_subject.id).expected == D("9000.00")


def test_cancelled_plan_is_ignored(db, organization, subject, make_plan):
    plan = make_plan(subject)
    cancel_plan(db, organization.id, plan.id)

    snapshot = get_financial_snapshot(db, organization.id, subject.id, as_of=date(2026, 6, 1))

    assert snapshot.expected == D("0.00")
    assert snapshot.overdue_count == 0
    assert snapshot.next_due_date is None


def test_due_report_sorted_and_filtered(db, organization, make_subject, make_plan):
    small = make_subject(name="Small")
    large = make_subject(name="Large")
    make_plan(small, total_amount="1200", installment_count=2)
    plan = make_plan(large)
    pay_item(db, organization, large, plan.schedule_items[0])

    report = get_due_report(db, organization.id, as_of=date(2026, 1, 15))

    assert [s.subject_id for s in report] == [large.id, small.id]
    assert [s.total_due for s in report] == [D("5000.00"), D("1200.00")]
    assert [s.subject_id for s in get_due_report(db, organization.id, status="not_paid",
                                                 as_of=date(2026, 1, 15))] == [small.id]


def test_due_report_is_cached_until_next_write(db, organization, subject, make_plan):
    plan = make_plan(subject)
    as_of = date(2026, 1, 15)
    assert get_due_report(db, organization.id, as_of=as_of)[0].total_due == D("6000.00")

    # Written behind the ledger's back: the cached report does not see it
    db.add(Payment(organization_id=organization.id, subject_id=subject.id, amount=D("100"),
                   mode="cash", category="tuition", status="completed"))
    db.commit()
    assert get_due_report(db, organization.id, as_of=as_of)[0].total_due == D("6000.00")

    # A ledger write invalidates the organization's cache
    pay_item(db, organization, subject, plan.schedule_items[0])
    assert get_due_report(db, organization.id, as_of=as_of)[0].total_due == D("4900.00")


def test_snapshot_of_unknown_subject(db, organization):
    from billing.errors import NotFound

    with pytest.raises(NotFound):
        get_financial_snapshot(db, organization.id, 12345)
