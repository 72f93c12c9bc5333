from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.orm import Session

from slotwise.models.notification import Notification
from slotwise.models.timetable import ConflictType

logger = logging.getLogger(__name__)

CONFLICT_NOTIFICATION_TITLE = "Timetable Conflict Detected"


class ConflictNotifier(Protocol):
    def notify(self, user_id: str, conflict_type: ConflictType, entry_id: str | None, description: str) -> None:
        ...


class DatabaseConflictNotifier:
    """Stores conflict notifications in the caller's transaction; delivery happens elsewhere."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def notify(self, user_id: str, conflict_type: ConflictType, entry_id: str | None, description: str) -> None:
        record = Notification(
            user_id=user_id,
            title=CONFLICT_NOTIFICATION_TITLE,
            message=f"A conflict has been detected in your schedule: {description}",
            conflict_type=conflict_type,
            entry_id=entry_id,
        )
        self.db.add(record)
        logger.info(
            "CONFLICT NOTIFICATION QUEUED | user_id=%s | conflict_type=%s | entry_id=%s",
            user_id,
            conflict_type.value,
            entry_id,
        )
