"""Shared fakes and builders for the test-suite."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from leadstreak.advisory.backends import AdvisoryReply, RuleBasedAdvisoryBackend
from leadstreak.advisory.service import AdvisoryService
from leadstreak.leads.bridge import LeadToTaskBridge
from leadstreak.leads.pipeline import LeadPipeline
from leadstreak.leads.store import LeadStore
from leadstreak.ledger.ledger import Ledger
from leadstreak.models.advisory import AdvisoryRequest
from leadstreak.models.lead import Lead, LeadPlatform, LeadStatus
from leadstreak.models.task import Commitment, ReminderPolicy, TaskCategory, TaskStatus
from leadstreak.monitor.loop import DeadlineMonitor
from leadstreak.notifications.bus import NotificationBus
from leadstreak.recovery.workflow import RecoveryWorkflow
from leadstreak.staking.validator import StakeValidator
from leadstreak.staking.wallet import WalletSession
from leadstreak.tasks.service import CommitmentService
from leadstreak.tasks.store import TaskStore

ADDRESS = "0xTEST000000000000000000000000000000000001"


class InstantWalletProvider:
    def __init__(self, address: str = ADDRESS, delay: float = 0):
        self.address = address
        self.delay = delay
        self.calls = 0

    async def acquire(self) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return self.address


class FailingWalletProvider:
    def __init__(self):
        self.calls = 0

    async def acquire(self) -> str:
        self.calls += 1
        raise ConnectionError("user rejected the request")


class ScriptedAdvisoryBackend:
    """Answers with queued replies; an Exception in the queue is raised instead."""

    def __init__(self, replies: Optional[list] = None):
        self.replies = list(replies or [])
        self.requests: List[AdvisoryRequest] = []

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, AdvisoryReply):
            return reply
        return AdvisoryReply(text=reply)


class FailingAdvisoryBackend:
    def __init__(self):
        self.calls = 0

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply:
        self.calls += 1
        raise ConnectionError("advisory service unreachable")


class GatedAdvisoryBackend:
    """Blocks every request until `release` is set, then defers to the rule-based backend."""

    def __init__(self):
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self._rules = RuleBasedAdvisoryBackend()

    async def complete(self, request: AdvisoryRequest) -> AdvisoryReply:
        self.started.set()
        await self.release.wait()
        return await self._rules.complete(request)


class Engine:
    """The engine's components wired together the way create_app wires them."""

    def __init__(
        self,
        balance: Decimal = Decimal("4.20"),
        advisory_backend=None,
        identity_provider=None,
    ):
        self.notifications = NotificationBus()
        self.store = TaskStore()
        self.leads = LeadStore()
        self.ledger = Ledger(initial_balance=balance)
        self.wallet = WalletSession(
            provider=identity_provider or InstantWalletProvider(), timeout_seconds=1.0
        )
        self.validator = StakeValidator(self.ledger, self.wallet, self.notifications)
        self.commitments = CommitmentService(self.store, self.ledger, self.validator)
        self.advisory = AdvisoryService(
            backend=advisory_backend, timeout_seconds=1.0, max_retries=2
        )
        self.recovery = RecoveryWorkflow(
            self.store, self.commitments, self.advisory, self.notifications
        )
        self.monitor = DeadlineMonitor(
            self.store, self.ledger, self.recovery, self.notifications,
            interval_seconds=0.01,
        )
        self.bridge = LeadToTaskBridge(self.leads, self.commitments)
        self.pipeline = LeadPipeline(self.leads, self.advisory)

    def kinds(self) -> list:
        return [n.kind for n in self.notifications.recent(limit=500)]


def make_commitment(
    task_id: str = "task_1",
    title: str = "Send 5 DMs",
    stake: str = "0.5",
    status: TaskStatus = TaskStatus.ACTIVE,
    deadline: Optional[datetime] = None,
    reminder_policy: ReminderPolicy = ReminderPolicy.NONE,
    category: TaskCategory = TaskCategory.LEADS,
    created_at: Optional[datetime] = None,
    **extra,
) -> Commitment:
    return Commitment(
        id=task_id,
        title=title,
        description=f"{title} today",
        category=category,
        stake_amount=Decimal(stake),
        status=status,
        created_at=created_at or datetime.utcnow(),
        deadline=deadline,
        reminder_policy=reminder_policy,
        **extra,
    )


def make_lead(
    lead_id: str = "lead_1",
    name: str = "Jordan Blake",
    status: LeadStatus = LeadStatus.PENDING,
    platform: LeadPlatform = LeadPlatform.LINKEDIN,
) -> Lead:
    return Lead(
        id=lead_id,
        name=name,
        title="Founder",
        company="Northwind Labs",
        summary="Runs a growth agency",
        personalized_message="Hi Jordan, quick idea for Northwind.",
        platform=platform,
        contact_info="https://linkedin.com/in/jordanblake",
        status=status,
    )


def seed_missed(engine: Engine, task_id: str = "task_1", stake: str = "0.2", now=None):
    """Put a commitment past its deadline and run one monitor tick."""
    now = now or datetime.utcnow()
    engine.store.add(make_commitment(
        task_id=task_id,
        stake=stake,
        deadline=now - timedelta(minutes=1),
        created_at=now - timedelta(hours=2),
    ))
    engine.monitor.evaluate_once(now)
    return engine.store.require(task_id)
