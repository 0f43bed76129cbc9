# -*- coding: utf-8 -*-
"""
Shared fixtures: an in-memory SQLite database per test and a TestClient whose
database and organization dependencies point at it.
"""
import os
import threading

# Must be set before billing.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from billing.auth import get_current_organization
from billing.database import Base, get_db
from billing.models import (attendance, class_fee, follow_up, notification, payment,  # noqa: F401
                            plan, schedule_item)
from billing.models.enrollment import Enrollment
from billing.models.organization import Organization
from billing.models.subject import Subject
from billing.schemas.plan import PlanCreate
from billing.services.cache import report_cache
from billing.services.plans import create_plan

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    report_cache.clear()
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def file_sessions(tmp_path):
    """
    Session factory on a file-backed SQLite database, for tests where several
    threads hold their own connection.
    """
    file_engine = create_engine(f"sqlite:///{tmp_path / 'billing.db'}",
                                connect_args={"check_same_thread": False, "timeout": 30})

    # BEGIN IMMEDIATE takes the write lock that FOR UPDATE takes on other databases
    @event.listens_for(file_engine, "connect")
    def disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(file_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


@pytest.fixture
def run_together():
    """Runs ``target`` in ``count`` threads released at the same moment and waits for them."""
    def _run(target, count=2):
        barrier = threading.Barrier(count)

        def start_together():
            barrier.wait()
            target()

        threads = [threading.Thread(target=start_together) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
    return _run


@pytest.fixture
def organization(db):
    org = Organization(name="Sunrise Academy")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def make_subject(db, organization):
    def _make(name="Ana Souza", program_class="Grade 1", total_fee_override=None, organization_id=None):
        subject = Subject(
            organization_id=organization_id or organization.id,
            name=name,
            program_class=program_class,
            total_fee_override=total_fee_override,
        )
        db.add(subject)
        db.commit()
        db.refresh(subject)
        return subject
    return _make


@pytest.fixture
def subject(make_subject):
    return make_subject()


@pytest.fixture
def make_plan(db, organization):
    """Plan of 6000 in 6 monthly installments starting 2026-01-10 unless told otherwise."""
    def _make(subject, total_amount="6000", installment_count=6, start_date=date(2026, 1, 10),
              end_date=date(2026, 7, 1), **extra):
        payload = PlanCreate(
            subject_id=subject.id,
            total_amount=Decimal(total_amount),
            installment_count=installment_count,
            start_date=start_date,
            end_date=end_date,
            **extra
        )
        return create_plan(db, organization.id, payload)
    return _make


@pytest.fixture
def make_enrollment(db, organization):
    def _make(subject, start_date=date(2026, 1, 1), end_date=date(2026, 12, 31),
              custom_hourly_rate=None, plan_id=None, status="active"):
        enrollment = Enrollment(
            organization_id=organization.id,
            subject_id=subject.id,
            plan_id=plan_id,
            start_date=start_date,
            end_date=end_date,
            custom_hourly_rate=custom_hourly_rate,
            status=status,
        )
        db.add(enrollment)
        db.commit()
        db.refresh(enrollment)
        return enrollment
    return _make


@pytest.fixture
def client(db, organization):
    from main import app

    organization_id = organization.id

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_organization] = lambda: organization_id
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
