"""
Deadline Monitor — the engine's heartbeat.

Runs on a fixed interval, independently of user action. Each tick reads the
Task Store afresh and, for every active commitment with a deadline:

  1. Reminder check: fire once inside [deadline - offset, deadline)
  2. Miss check: past the deadline → MISSED, forfeit journaled, recovery opened

The monitor is the only component that moves a commitment into MISSED.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from leadstreak.ledger.ledger import Ledger
from leadstreak.models.notification import NotificationKind
from leadstreak.models.task import AccountabilityAction, Commitment, ReminderPolicy, TaskStatus
from leadstreak.notifications.bus import NotificationBus
from leadstreak.recovery.workflow import RecoveryWorkflow
from leadstreak.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class MonitorEvent:
    """Something the monitor did to one commitment during a tick."""

    REMINDER = "reminder"
    MISSED = "missed"

    def __init__(self, kind: str, task_id: str, deadline: datetime, detected_at: datetime):
        self.kind = kind
        self.task_id = task_id
        self.deadline = deadline
        self.detected_at = detected_at

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "task_id": self.task_id,
            "deadline": self.deadline.isoformat(),
            "detected_at": self.detected_at.isoformat(),
        }


class DeadlineMonitor:
    """
    States:
      IDLE → TICK (reminders, then misses) → IDLE, re-armed every interval
    """

    def __init__(
        self,
        store: TaskStore,
        ledger: Ledger,
        recovery: RecoveryWorkflow,
        notifications: NotificationBus,
        interval_seconds: float = 5.0,
    ):
        self.store = store
        self.ledger = ledger
        self.recovery = recovery
        self.notifications = notifications
        self.interval_seconds = interval_seconds

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._ticks = 0
        self._last_tick_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def tick_count(self) -> int:
        return self._ticks

    @property
    def last_tick_at(self) -> Optional[datetime]:
        return self._last_tick_at

    def evaluate_once(self, current_time: Optional[datetime] = None) -> List[MonitorEvent]:
        """
        Run a single evaluation pass over the current Task Store state.
        Returns the events produced, in detection order.
        """
        if current_time is None:
            current_time = datetime.utcnow()

        events: List[MonitorEvent] = []
        for task in self.store.active_with_deadline():
            # One bad record must not hold back the rest of the pass
            try:
                reminder = self._check_reminder(task, current_time)
                if reminder:
                    events.append(reminder)
                missed = self._check_miss(task, current_time)
                if missed:
                    events.append(missed)
            except Exception:
                logger.exception("Deadline check failed for %s", task.id)

        self._ticks += 1
        self._last_tick_at = current_time
        return events

    def _check_reminder(
        self, task: Commitment, current_time: datetime
    ) -> Optional[MonitorEvent]:
        if task.reminder_policy == ReminderPolicy.NONE or task.reminder_sent:
            return None

        window_start = task.deadline - task.reminder_policy.offset
        if not (window_start <= current_time < task.deadline):
            return None

        self.store.mark_reminder_sent(task.id)
        logger.info("Reminder fired for %s (due %s)", task.id, task.deadline.isoformat())
        self.notifications.publish(
            NotificationKind.REMINDER,
            f"REMINDER: Task \"{task.title}\" is due soon!",
            task_id=task.id,
            payload={"deadline": task.deadline.isoformat()},
        )
        return MonitorEvent(MonitorEvent.REMINDER, task.id, task.deadline, current_time)

    def _check_miss(
        self, task: Commitment, current_time: datetime
    ) -> Optional[MonitorEvent]:
        if current_time <= task.deadline:
            return None

        task = self.store.transition(task.id, TaskStatus.MISSED)
        self.ledger.forfeit(task)
        self.store.record_outcome(task, AccountabilityAction.MISSED, current_time)
        logger.info(
            "Commitment %s missed its deadline; stake %s forfeited",
            task.id, task.stake_amount,
        )
        self.notifications.publish(
            NotificationKind.TASK_MISSED,
            f"Task Deadline Missed! Action required for \"{task.title}\"",
            task_id=task.id,
            payload={"stake_forfeited": str(task.stake_amount)},
        )
        self.recovery.open(task, now=current_time)
        return MonitorEvent(MonitorEvent.MISSED, task.id, task.deadline, current_time)

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the monitor until `stop_event` is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event

        try:
            while not stop_event.is_set():
                try:
                    self.evaluate_once()
                except Exception:
                    logger.exception("Deadline monitor tick failed")
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False

    def start(self) -> asyncio.Task:
        """Schedule the monitor on the running loop. Returns the task handle."""
        if self._task is not None and not self._task.done():
            return self._task
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._running = True
        self._task = asyncio.get_running_loop().create_task(
            self.run_async(stop_event), name="deadline-monitor"
        )
        return self._task

    async def stop(self) -> None:
        """Stop the scheduled monitor and wait for it to wind down."""
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=self.interval_seconds + 1)
        except asyncio.TimeoutError:
            self._task.cancel()
        self._task = None
        self._running = False
