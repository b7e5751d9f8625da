"""
Recovery Workflow — guided recovery after a missed deadline.

States:
  MISSED → (reason) → AWAITING_ADVICE → (advisory) → ADVISED → (ACCEPTED | DECLINED)

- Advisory failure returns the case to MISSED so the reason can be resubmitted;
  no stale advice is ever left on an ADVISED case.
- Accepting stakes a brand-new commitment (streak 0, category copied from the
  original). The original missed commitment keeps its stake and status.
- Closing the workflow discards any in-flight advisory result.
- One case is in progress at a time. A newer miss takes the slot; older missed
  commitments stay missed.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Set
from uuid import uuid4

from leadstreak.advisory.service import AdvisoryService
from leadstreak.errors import AdvisoryUnavailableError, RecoveryStateError
from leadstreak.models.notification import NotificationKind
from leadstreak.models.recovery import MissReason, RecoveryCase, RecoveryState
from leadstreak.models.task import Commitment, ReminderPolicy, TaskStatus
from leadstreak.notifications.bus import NotificationBus
from leadstreak.tasks.service import CommitmentService
from leadstreak.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class RecoveryWorkflow:

    def __init__(
        self,
        store: TaskStore,
        commitments: CommitmentService,
        advisory: AdvisoryService,
        notifications: NotificationBus,
        default_stake: Decimal = Decimal("0.1"),
        replacement_deadline: timedelta = timedelta(hours=24),
    ):
        self.store = store
        self.commitments = commitments
        self.advisory = advisory
        self.notifications = notifications
        self.default_stake = default_stake
        self.replacement_deadline = replacement_deadline

        self._cases: Dict[str, RecoveryCase] = {}
        self._current_id: Optional[str] = None
        self._accepting: Set[str] = set()

    @property
    def current(self) -> Optional[RecoveryCase]:
        """The case presented to the user, if any."""
        if self._current_id is None:
            return None
        return self._cases.get(self._current_id)

    def get_case(self, case_id: str) -> Optional[RecoveryCase]:
        return self._cases.get(case_id)

    def list_cases(self) -> List[RecoveryCase]:
        return list(self._cases.values())

    def unresolved_missed(self) -> List[Commitment]:
        """Missed commitments whose recovery was never accepted or declined."""
        resolved = {
            c.task_id for c in self._cases.values() if not c.is_open
        }
        return [
            t for t in self.store.list_by_status(TaskStatus.MISSED)
            if t.id not in resolved
        ]

    def open(self, task: Commitment, now: Optional[datetime] = None) -> RecoveryCase:
        """Open a case for a missed commitment and make it the current one."""
        if task.status != TaskStatus.MISSED:
            raise RecoveryStateError(
                f"Commitment {task.id} is {task.status.value}, not missed"
            )
        previous = self.current
        if previous is not None and previous.is_open:
            logger.info(
                "Recovery for %s superseded by newer miss %s",
                previous.task_id, task.id,
            )

        case = RecoveryCase(
            id=f"rec_{uuid4().hex[:12]}",
            task_id=task.id,
            opened_at=now or datetime.utcnow(),
        )
        self._cases[case.id] = case
        self._current_id = case.id
        return case

    def _require_current(self, *states: RecoveryState) -> RecoveryCase:
        case = self.current
        if case is None:
            raise RecoveryStateError("No recovery in progress")
        if states and case.state not in states:
            raise RecoveryStateError(
                f"Recovery {case.id} is {case.state.value}; expected "
                f"{' or '.join(s.value for s in states)}"
            )
        return case

    def _is_live(self, case: RecoveryCase, state: RecoveryState) -> bool:
        return self._current_id == case.id and case.state == state

    async def submit_reason(self, reason: MissReason) -> RecoveryCase:
        """Record why the task was missed and fetch a recovery plan."""
        case = self._require_current(RecoveryState.MISSED)
        task = self.store.require(case.task_id)

        case.state = RecoveryState.AWAITING_ADVICE
        case.reason = reason
        case.last_error = None

        try:
            advice = await self.advisory.adjust_task(task, reason.value)
        except AdvisoryUnavailableError as e:
            if self._is_live(case, RecoveryState.AWAITING_ADVICE):
                case.state = RecoveryState.MISSED
                case.last_error = str(e)
            logger.warning("Recovery %s could not get advice: %s", case.id, e)
            return case
        except asyncio.CancelledError:
            if self._is_live(case, RecoveryState.AWAITING_ADVICE):
                case.state = RecoveryState.MISSED
            raise

        if not self._is_live(case, RecoveryState.AWAITING_ADVICE):
            logger.info("Discarding advice for closed recovery %s", case.id)
            return case

        case.advice = advice
        case.state = RecoveryState.ADVISED
        self.store.update_fields(
            task.id,
            missed_reason=reason.value,
            ai_recommendation=advice.recommendation,
            suggested_replacement_task=advice.suggested_task,
        )
        self.notifications.publish(
            NotificationKind.RECOVERY_ADVISED,
            f"Recovery plan ready for \"{task.title}\"",
            task_id=task.id,
            payload={"case_id": case.id},
        )
        return case

    async def accept(self, now: Optional[datetime] = None) -> Optional[Commitment]:
        """
        Stake the suggested replacement.

        Returns None if the stake could not be validated; the case stays ADVISED
        so the user can top up and try again.
        """
        case = self._require_current(RecoveryState.ADVISED)
        if case.id in self._accepting:
            raise RecoveryStateError(f"Recovery {case.id} is already being accepted")

        original = self.store.require(case.task_id)
        suggested = case.advice.suggested_task
        stake = suggested.stake_amount or self.default_stake

        replacement = self.commitments.build_commitment(
            title=suggested.title,
            description=suggested.description,
            stake_amount=stake,
            category=original.category,
            deadline_in=self.replacement_deadline,
            reminder_policy=ReminderPolicy.HOUR_1,
            now=now,
        )

        self._accepting.add(case.id)
        try:
            created = await self.commitments.stake_and_create(
                replacement,
                guard=lambda: self._is_live(case, RecoveryState.ADVISED),
            )
        finally:
            self._accepting.discard(case.id)

        if created is None:
            return None

        case.state = RecoveryState.ACCEPTED
        case.replacement_task_id = created.id
        case.closed_at = now or datetime.utcnow()
        self._current_id = None
        logger.info(
            "Recovery %s accepted: %s replaces %s", case.id, created.id, original.id
        )
        return created

    def decline(self, now: Optional[datetime] = None) -> RecoveryCase:
        """Close the workflow without a replacement. In-flight advice is discarded."""
        case = self._require_current()
        case.state = RecoveryState.DECLINED
        case.closed_at = now or datetime.utcnow()
        self._current_id = None
        logger.info("Recovery %s declined for %s", case.id, case.task_id)
        return case

    # Dismissing the recovery view is a decline
    close = decline
