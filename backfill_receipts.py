# -*- coding: utf-8 -*-
"""
Issues receipt numbers for every payment that still lacks one.

Idempotent: payments that already have a number are never touched, so the
script can be re-run and can run alongside live traffic.

    python backfill_receipts.py
    python backfill_receipts.py --organization 3
"""
import argparse
import logging

from dotenv import load_dotenv

load_dotenv()

from billing.config import Config  # noqa: E402
from billing.database import SessionLocal  # noqa: E402
from billing.models import (attendance, class_fee, enrollment, follow_up, notification,  # noqa: E402,F401
                            organization, payment, plan, schedule_item, subject)
from billing.services.ledger import backfill_missing_receipts  # noqa: E402

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description='Receipt number backfill')
    parser.add_argument('--organization', type=int, help='Only this organization id')
    args = parser.parse_args()

    db = SessionLocal()
    try:
        result = backfill_missing_receipts(db, organization_id=args.organization)
    except Exception as e:
        logging.error(f"Backfill aborted: {e}")
        db.rollback()
        raise
    else:
        logging.info(f"SUCCESS: {result['issued']} receipt(s) issued out of {result['scanned']} payment(s)")
    finally:
        db.close()


if __name__ == "__main__":
    main()
