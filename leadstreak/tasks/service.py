"""
Commitment Service — the only write path that creates or completes commitments.

Behavioral Contract:
- Every new commitment passes the Stake Validator first
- The debit and the insert happen together, with no suspension point between
  them: no commitment exists without its debit, and no debit without its
  commitment
- Invalid manual input is rejected before any state is touched
- Completion never refunds; it journals the stake as cleared
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional
from uuid import uuid4

from leadstreak.errors import InvalidCommitmentError, InvalidTransitionError
from leadstreak.ledger.ledger import Ledger
from leadstreak.models.task import (
    AccountabilityAction,
    Commitment,
    CommitmentDraft,
    ReminderPolicy,
    SourcePlatform,
    TaskCategory,
    TaskStatus,
)
from leadstreak.staking.validator import StakeValidator
from leadstreak.tasks.store import TaskStore

logger = logging.getLogger(__name__)


def new_task_id() -> str:
    return f"task_{uuid4().hex[:12]}"


class CommitmentService:

    def __init__(
        self,
        store: TaskStore,
        ledger: Ledger,
        validator: StakeValidator,
    ):
        self.store = store
        self.ledger = ledger
        self.validator = validator

    def build_commitment(
        self,
        title: str,
        stake_amount: Decimal,
        description: str = "",
        category: TaskCategory = TaskCategory.LEADS,
        deadline_in: Optional[timedelta] = None,
        deadline: Optional[datetime] = None,
        reminder_policy: ReminderPolicy = ReminderPolicy.NONE,
        now: Optional[datetime] = None,
        **linkage,
    ) -> Commitment:
        """Assemble a fresh active commitment. Nothing is stored or debited."""
        now = now or datetime.utcnow()
        if deadline is None and deadline_in is not None:
            deadline = now + deadline_in
        return Commitment(
            id=new_task_id(),
            title=title,
            description=description,
            category=category,
            streak=0,
            last_completed=None,
            stake_amount=stake_amount,
            status=TaskStatus.ACTIVE,
            created_at=now,
            deadline=deadline,
            reminder_policy=reminder_policy,
            **linkage,
        )

    async def stake_and_create(
        self,
        task: Commitment,
        guard: Optional[Callable[[], bool]] = None,
    ) -> Optional[Commitment]:
        """
        Validate the stake, then debit and insert as one unit.

        `guard` is re-checked after validation resumes; if it no longer holds
        (e.g. the requesting workflow was closed meanwhile) nothing is written.
        Returns None when validation fails; the ledger and store are untouched.
        """
        if not await self.validator.validate(task.stake_amount):
            return None
        if guard is not None and not guard():
            logger.info("Commitment %s abandoned before staking", task.id)
            return None

        # No await below this line: debit and insert are atomic on the loop.
        self.ledger.debit(task.stake_amount, task_id=task.id, memo=f"stake: {task.title}")
        try:
            self.store.add(task)
        except Exception:
            self.ledger.credit(
                task.stake_amount, task_id=task.id, memo="rollback: insert failed"
            )
            raise

        logger.info(
            "Commitment %s created with stake %s (balance now %s)",
            task.id, task.stake_amount, self.ledger.balance,
        )
        return task

    async def create_commitment(
        self, draft: CommitmentDraft, now: Optional[datetime] = None
    ) -> Optional[Commitment]:
        """Create a manual commitment. Manual commitments must be linked to a lead profile."""
        lead_name = draft.lead_name.strip()
        profile_url = draft.profile_url.strip()
        if not lead_name or not profile_url:
            raise InvalidCommitmentError(
                "All manual commitments must be linked to a lead profile."
            )

        task = self.build_commitment(
            title=draft.title.strip() or f"Outreach: {lead_name}",
            description=draft.description,
            stake_amount=draft.stake_amount,
            category=draft.category,
            deadline=draft.deadline,
            reminder_policy=draft.reminder_policy,
            now=now,
            contact_details=profile_url,
            source_platform=SourcePlatform.WEB,
        )
        return await self.stake_and_create(task)

    def complete(self, task_id: str, today: Optional[date] = None) -> Commitment:
        """
        Mark a commitment done for today.

        A second completion on the same day is a no-op.
        """
        today = today or datetime.utcnow().date()
        task = self.store.require(task_id)

        if task.last_completed == today:
            return task
        if task.status != TaskStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Only active commitments can be completed; {task_id} is {task.status.value}"
            )

        self.store.update_fields(
            task_id, streak=task.streak + 1, last_completed=today
        )
        task = self.store.transition(task_id, TaskStatus.COMPLETED)
        self.ledger.clear(task)
        self.store.record_outcome(task, AccountabilityAction.SUCCESS)
        logger.info("Commitment %s completed (streak %d)", task_id, task.streak)
        return task
