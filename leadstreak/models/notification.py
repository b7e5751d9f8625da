"""Notification: non-blocking engine event for the presentation layer."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NotificationKind(str, Enum):
    REMINDER = "reminder"
    TASK_MISSED = "task_missed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    IDENTITY_ACQUIRED = "identity_acquired"
    IDENTITY_FAILED = "identity_failed"
    RECOVERY_ADVISED = "recovery_advised"


class Notification(BaseModel):
    id: str
    kind: NotificationKind
    message: str
    task_id: Optional[str] = None
    created_at: datetime
    payload: dict = {}
