# -*- coding: utf-8 -*-
"""
Main FastAPI application of the billing reconciliation engine.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billing.config import Config
from billing.database import engine, Base
from billing.errors import BillingError

# Every model has to be imported before create_all
from billing.models import (attendance, class_fee, enrollment, follow_up, notification,  # noqa: F401
                            organization, payment, plan, schedule_item, subject)

from billing.routes import (attendance_fastapi, payments_fastapi, plans_fastapi,
                            reconciliation_fastapi, snapshots_fastapi, subjects_fastapi)

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=Config.LOG_FILE
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

docs_url = "/docs" if Config.ENVIRONMENT != "production" else None
redoc_url = "/redoc" if Config.ENVIRONMENT != "production" else None

app = FastAPI(
    title="Billing Reconciliation API",
    description="Installment plans, payment ledger, receipts, dues and usage billing",
    version="1.0.0",
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url="/openapi.json" if Config.ENVIRONMENT != "production" else None
)

origins = [
    Config.FRONTEND_URL,
    "http://localhost:5700",
    "http://localhost",
    "http://127.0.0.1",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["Root"], include_in_schema=False)
async def health():
    return {"status": "ok"}


app.include_router(plans_fastapi.router, prefix="/api/v1/plans")
app.include_router(payments_fastapi.router, prefix="/api/v1/payments")
app.include_router(snapshots_fastapi.router, prefix="/api/v1/snapshots")
app.include_router(attendance_fastapi.router, prefix="/api/v1/attendance")
app.include_router(subjects_fastapi.router, prefix="/api/v1/subjects")
app.include_router(reconciliation_fastapi.router, prefix="/api/v1/reconciliation")
