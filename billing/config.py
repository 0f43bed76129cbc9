# -*- coding: utf-8 -*-
"""
Billing engine configuration, read from environment variables (.env).
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


class Config:
    DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./billing.db")
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    CRON_SECRET = os.environ.get("CRON_SECRET", "")
    ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5700")

    DEFAULT_HOURLY_RATE = Decimal(os.environ.get("DEFAULT_HOURLY_RATE", "0"))
    REPORT_CACHE_TTL_SECONDS = int(os.environ.get("REPORT_CACHE_TTL_SECONDS", "300"))
    ACADEMIC_YEAR_START_MONTH = int(os.environ.get("ACADEMIC_YEAR_START_MONTH", "4"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE") or None
