# -*- coding: utf-8 -*-
"""
SQLAlchemy database configuration for the billing engine.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from billing.config import Config

DATABASE_URL = Config.DATABASE_URL

# Render/Heroku style URLs use the old "postgres://" scheme
if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    # Checks the connection is alive before handing it out
    pool_pre_ping=True,
    pool_recycle=3600
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Request-scoped session (used with Depends)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db):
    """
    Runs the block as one transaction: commit on success, rollback on any
    error (which is re-raised), so billing writes are all-or-nothing.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
