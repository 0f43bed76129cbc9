# -*- coding: utf-8 -*-
"""
Daily reconciliation pass (cron).

Flags enrollments ending tomorrow and expires those whose end date has passed.
Reminds installments due today and notifies overdue installments and
follow-ups. Safe to run more than once on the same day.

    python run_reconciliation.py              # today
    python run_reconciliation.py --date 2026-10-18
"""
import argparse
import logging
from datetime import date

from dotenv import load_dotenv

load_dotenv()

from billing.config import Config  # noqa: E402
from billing.database import SessionLocal, engine, Base  # noqa: E402
# --- All models are imported so their relationships resolve ---
from billing.models import (attendance, class_fee, enrollment, follow_up, notification,  # noqa: E402,F401
                            organization, payment, plan, schedule_item, subject)
from billing.services.reconciliation import run_reconciliation_pass  # noqa: E402

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description='Billing reconciliation pass')
    parser.add_argument('--date', type=date.fromisoformat, help='Run date (YYYY-MM-DD), defaults to today')
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = run_reconciliation_pass(db, today=args.date)
    except Exception as e:
        logging.error(f"Reconciliation aborted: {e}")
        db.rollback()
        raise
    else:
        if result["failures"]:
            logging.warning(f"{result['failures']} subject(s) failed and will be retried on the next run")
    finally:
        db.close()


if __name__ == "__main__":
    main()
