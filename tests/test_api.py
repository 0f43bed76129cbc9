# -*- coding: utf-8 -*-
from decimal import Decimal

from billing.auth import create_access_token, get_current_organization
from billing.config import Config

PLAN = {
    "total_amount": "6000",
    "installment_count": 6,
    "start_date": "2026-01-10",
    "end_date": "2026-07-01",
}


def create_plan(client, subject, **extra):
    return client.post("/api/v1/plans", json={**PLAN, "subject_id": subject.id, **extra})


def test_create_plan_and_duplicate(client, subject):
    response = create_plan(client, subject)
    assert response.status_code == 201
    body = response.json()
    assert len(body["schedule_items"]) == 6
    assert Decimal(body["installment_amount"]) == Decimal("1000")

    duplicate = create_plan(client, subject)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "DUPLICATE_ACTIVE_PLAN"
    assert duplicate.json()["details"]["active_plan_id"] == body["id"]


def test_invalid_plan_parameters(client, subject):
    response = create_plan(client, subject, installment_count=0)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PLAN_PARAMETERS"


def test_payment_receipt_and_snapshot(client, organization, subject):
    plan = create_plan(client, subject).json()
    first_item = plan["schedule_items"][0]

    response = client.post("/api/v1/payments", json={
        "subject_id": subject.id, "amount": "1000", "mode": "cash",
        "schedule_item_id": first_item["id"], "payment_date": "2026-01-09",
    })
    assert response.status_code == 201
    payment = response.json()
    assert payment["receipt_number"] == f"SUN/2025-26/{payment['id']:06d}"

    receipt = client.post(f"/api/v1/payments/{payment['id']}/receipt")
    assert receipt.json()["receipt_number"] == payment["receipt_number"]

    snapshot = client.get(f"/api/v1/snapshots/subjects/{subject.id}", params={"as_of": "2026-01-15"}).json()
    assert Decimal(snapshot["total_due"]) == Decimal("5000")
    assert snapshot["status"] == "partially_paid"
    assert snapshot["next_due_date"] == plan["schedule_items"][1]["due_date"]

    progress = client.get(f"/api/v1/plans/{plan['id']}/progress").json()
    assert progress["paid_installments"] == 1

    report = client.get("/api/v1/snapshots/due-report", params={"as_of": "2026-01-15"}).json()
    assert report["total"] == 1


def test_paid_item_conflict(client, subject):
    item = create_plan(client, subject).json()["schedule_items"][0]
    payload = {"subject_id": subject.id, "amount": "1000", "mode": "cash", "schedule_item_id": item["id"]}

    assert client.post("/api/v1/payments", json=payload).status_code == 201
    second = client.post("/api/v1/payments", json=payload)

    assert second.status_code == 409
    assert second.json()["code"] == "SCHEDULE_ITEM_ALREADY_PAID"


def test_cancel_plan_with_payments(client, subject):
    plan = create_plan(client, subject).json()
    client.post("/api/v1/payments", json={
        "subject_id": subject.id, "amount": "1000", "mode": "cash",
        "schedule_item_id": plan["schedule_items"][0]["id"],
    })

    response = client.post(f"/api/v1/plans/{plan['id']}/cancel")

    assert response.status_code == 409
    assert response.json()["code"] == "PLAN_HAS_PAYMENTS"


def test_delete_subject_with_obligations(client, subject):
    create_plan(client, subject)

    response = client.delete(f"/api/v1/subjects/{subject.id}")

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "ACTIVE_FINANCIAL_OBLIGATIONS"
    assert body["details"]["total_outstanding"] == "6000.00"


def test_delete_subject_without_obligations(client, subject):
    response = client.delete(f"/api/v1/subjects/{subject.id}")

    assert response.status_code == 200
    assert response.json()["status"] == "expired"


def test_attendance_and_usage(client, subject, make_enrollment):
    enrollment = make_enrollment(subject, custom_hourly_rate=Decimal("100"))

    event = client.post("/api/v1/attendance/check-in", json={
        "enrollment_id": enrollment.id, "check_in_time": "2026-03-02T08:00:00",
    }).json()
    bad = client.post(f"/api/v1/attendance/{event['id']}/check-out", json={"check_out_time": "2026-03-02T07:00:00"})
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_ATTENDANCE_WINDOW"

    done = client.post(f"/api/v1/attendance/{event['id']}/check-out", json={"check_out_time": "2026-03-02T11:00:00"})
    assert done.json()["duration_minutes"] == 180

    charge = client.get(f"/api/v1/attendance/enrollments/{enrollment.id}/usage",
                        params={"year": 2026, "month": 3}).json()
    assert Decimal(charge["amount"]) == Decimal("300")


def test_reconciliation_requires_cron_secret(client, monkeypatch):
    monkeypatch.setattr(Config, "CRON_SECRET", "s3cret")

    assert client.post("/api/v1/reconciliation/run").status_code == 401
    assert client.post("/api/v1/reconciliation/run", headers={"X-Cron-Secret": "wrong"}).status_code == 401

    response = client.post("/api/v1/reconciliation/run", params={"run_date": "2026-10-18"},
                           headers={"X-Cron-Secret": "s3cret"})
    assert response.status_code == 200
    assert response.json()["run_date"] == "2026-10-18"
    assert response.json()["failures"] == 0


def test_organization_comes_from_token(client, organization, subject):
    from main import app

    app.dependency_overrides.pop(get_current_organization)

    missing = client.get(f"/api/v1/snapshots/subjects/{subject.id}")
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"

    invalid = client.get(f"/api/v1/snapshots/subjects/{subject.id}", headers={"Authorization": "Bearer nope"})
    assert invalid.status_code == 401

    no_org = create_access_token({"sub": "someone"})
    response = client.get(f"/api/v1/snapshots/subjects/{subject.id}", headers={"Authorization": f"Bearer {no_org}"})
    assert response.status_code == 401

    token = create_access_token({"sub": "bursar", "org_id": organization.id})
    response = client.get(f"/api/v1/snapshots/subjects/{subject.id}", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["subject_id"] == subject.id

    other = create_access_token({"sub": "bursar", "org_id": organization.id + 1})
    response = client.get(f"/api/v1/snapshots/subjects/{subject.id}", headers={"Authorization": f"Bearer {other}"})
    assert response.status_code == 404
