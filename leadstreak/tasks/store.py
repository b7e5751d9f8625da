"""
Task Store — the set of commitments and their lifecycle state.

Single source of truth consumed by every view.
Updated by: Commitment Service (create, complete), Deadline Monitor (reminder, miss),
            Recovery Workflow (recovery fields)
Queried by: Deadline Monitor, Analytics, API
"""

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional
from uuid import uuid4

from leadstreak.errors import InvalidTransitionError, TaskNotFoundError
from leadstreak.models.task import (
    AccountabilityAction,
    AccountabilityLog,
    Commitment,
    TaskStatus,
)

# Allowed status transitions. Completed and missed are terminal; broken is
# reserved and no rule produces it.
_TRANSITIONS = {
    TaskStatus.ACTIVE: {TaskStatus.COMPLETED, TaskStatus.MISSED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.MISSED: set(),
    TaskStatus.BROKEN: set(),
}


class TaskStore:
    """
    In-memory commitment store.
    Persistence beyond the process lifetime is out of scope.
    """

    def __init__(self):
        self._tasks: Dict[str, Commitment] = {}
        self._logs: List[AccountabilityLog] = []
        self._lock = Lock()

    def add(self, task: Commitment) -> Commitment:
        """Insert a commitment. Only the Commitment Service calls this after a debit."""
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"Commitment {task.id} already exists")
            self._tasks[task.id] = task
        return task

    def get(self, task_id: str) -> Optional[Commitment]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Commitment:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def remove(self, task_id: str) -> bool:
        """Delete a commitment. Linked leads are not touched."""
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def list_all(self) -> List[Commitment]:
        return list(self._tasks.values())

    def list_by_status(self, status: TaskStatus) -> List[Commitment]:
        return [t for t in self._tasks.values() if t.status == status]

    def active_with_deadline(self) -> List[Commitment]:
        """Commitments the Deadline Monitor is responsible for."""
        return [
            t for t in self._tasks.values()
            if t.status == TaskStatus.ACTIVE and t.deadline is not None
        ]

    def transition(self, task_id: str, new_status: TaskStatus) -> Commitment:
        """Move a commitment along the state machine or raise InvalidTransitionError."""
        with self._lock:
            task = self.require(task_id)
            if new_status not in _TRANSITIONS[task.status]:
                raise InvalidTransitionError(
                    f"Commitment {task_id} cannot move from "
                    f"{task.status.value} to {new_status.value}"
                )
            task.status = new_status
            return task

    def mark_reminder_sent(self, task_id: str) -> Commitment:
        with self._lock:
            task = self.require(task_id)
            task.reminder_sent = True
            return task

    def update_fields(self, task_id: str, **updates) -> Commitment:
        """Apply non-lifecycle field updates (recovery notes, completion bookkeeping)."""
        protected = {"id", "status", "created_at", "stake_amount", "reminder_sent"}
        illegal = protected.intersection(updates)
        if illegal:
            raise ValueError(f"Fields {sorted(illegal)} cannot be updated directly")
        with self._lock:
            task = self.require(task_id)
            for field, value in updates.items():
                setattr(task, field, value)
            return task

    # --- Accountability log ---

    def record_outcome(
        self,
        task: Commitment,
        action: AccountabilityAction,
        timestamp: Optional[datetime] = None,
    ) -> AccountabilityLog:
        """Record a success or miss for the accountability circle."""
        log = AccountabilityLog(
            id=f"acc_{uuid4().hex[:12]}",
            task_id=task.id,
            action=action,
            timestamp=timestamp or datetime.utcnow(),
            penalty_applied=(
                task.stake_amount if action == AccountabilityAction.MISSED else None
            ),
        )
        self._logs.append(log)
        return log

    def get_logs(self, task_id: Optional[str] = None) -> List[AccountabilityLog]:
        if task_id is None:
            return list(self._logs)
        return [log for log in self._logs if log.task_id == task_id]

    def get_state_snapshot(self) -> List[dict]:
        """Serializable snapshot of every commitment."""
        return [t.model_dump(mode="json") for t in self._tasks.values()]
