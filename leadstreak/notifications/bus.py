"""
Notification Bus — non-blocking engine events.

Reminders, misses and insufficient-funds conditions are published here instead
of blocking on user acknowledgment. The presentation layer subscribes; the
engine never waits for a subscriber.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional
from uuid import uuid4

from leadstreak.models.notification import Notification, NotificationKind

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], None]


class NotificationBus:
    """Fan-out of notifications to subscribers, with a bounded history."""

    def __init__(self, history_size: int = 200):
        self._subscribers: List[Subscriber] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a callable that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(
        self,
        kind: NotificationKind,
        message: str,
        task_id: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            id=f"ntf_{uuid4().hex[:12]}",
            kind=kind,
            message=message,
            task_id=task_id,
            created_at=datetime.utcnow(),
            payload=payload or {},
        )
        self._history.append(notification)
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception:
                # A broken subscriber must never stall the engine
                logger.exception(
                    "Notification subscriber failed for %s", notification.kind.value
                )
        return notification

    def recent(
        self, limit: int = 50, kind: Optional[NotificationKind] = None
    ) -> List[Notification]:
        items = [n for n in self._history if kind is None or n.kind == kind]
        return items[-limit:]
