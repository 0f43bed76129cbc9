# -*- coding: utf-8 -*-
"""
Notification Sink used by the reconciliation job.

Delivery (push, e-mail, in-app) belongs to the platform; the billing engine only
records that a notification must exist. Repeated dedupe keys are ignored, which
keeps re-runs of the job from flooding users.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from billing.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationSink:

    def create_notification(self, subject_id: Optional[int], type: str, message: str,
                            priority: str = "medium", title: Optional[str] = None,
                            organization_id: Optional[int] = None,
                            dedupe_key: Optional[str] = None) -> bool:
        """Returns True when a new notification was recorded."""
        raise NotImplementedError


class DatabaseNotificationSink(NotificationSink):

    def __init__(self, db: Session):
        self.db = db

    def create_notification(self, subject_id, type, message, priority="medium", title=None,
                            organization_id=None, dedupe_key=None):
        if dedupe_key:
            exists = self.db.query(Notification.id).filter(Notification.dedupe_key == dedupe_key).first()
            if exists:
                logger.debug(f"Notification {dedupe_key} already emitted, skipping")
                return False

        notification = Notification(
            organization_id=organization_id,
            subject_id=subject_id,
            type=type,
            title=title or type.replace("_", " ").capitalize(),
            message=message,
            priority=priority,
            dedupe_key=dedupe_key,
        )
        # A concurrent run inserting the same key fails here with IntegrityError;
        # the caller rolls back that subject and the next run picks it up again.
        self.db.add(notification)
        self.db.flush()
        return True
