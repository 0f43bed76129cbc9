# -*- coding: utf-8 -*-
"""
Charge Catalog: the fees a class/program is expected to pay.
"""
from collections import namedtuple
from typing import List, Optional

from sqlalchemy.orm import Session

from billing.models.class_fee import ClassFee

ApplicableCharge = namedtuple("ApplicableCharge", ["type", "amount", "frequency"])


class ChargeCatalog:
    """Interface consumed by the snapshot aggregator."""

    def get_applicable_charges(self, organization_id: int, program_class: Optional[str]) -> List[ApplicableCharge]:
        raise NotImplementedError


class DatabaseChargeCatalog(ChargeCatalog):
    """Reads the active ``class_fees`` rows of the organization."""

    def __init__(self, db: Session):
        self.db = db

    def get_applicable_charges(self, organization_id, program_class):
        if not program_class:
            return []
        rows = self.db.query(ClassFee).filter(
            ClassFee.organization_id == organization_id,
            ClassFee.class_name == program_class,
            ClassFee.is_active == True  # noqa: E712
        ).order_by(ClassFee.id).all()
        return [ApplicableCharge(row.fee_type, row.amount, row.frequency) for row in rows]
