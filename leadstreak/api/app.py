"""
LeadStreak API — FastAPI endpoints.

Exposes the commitment engine via a REST API for:
- Commitment creation, listing and completion
- Ledger balance, deposits and journal verification
- Wallet connection
- Deadline monitor control
- Missed-task recovery
- Lead discovery, approval and follow-up
- Coaching, analytics and notifications
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from leadstreak.advisory.backends import AdvisoryBackend, create_backend
from leadstreak.advisory.service import AdvisoryService
from leadstreak.errors import (
    IdentityAcquisitionError,
    InvalidInputError,
    LeadNotFoundError,
    LeadStreakError,
    TaskNotFoundError,
)
from leadstreak.leads.bridge import LeadToTaskBridge
from leadstreak.leads.pipeline import LeadPipeline
from leadstreak.leads.store import LeadStore
from leadstreak.ledger.journal import LedgerJournal
from leadstreak.ledger.ledger import Ledger
from leadstreak.models.config import EngineConfig
from leadstreak.models.lead import LeadStatus
from leadstreak.models.notification import NotificationKind
from leadstreak.models.recovery import MissReason
from leadstreak.models.task import CommitmentDraft, TaskCategory, to_naive_utc
from leadstreak.monitor.loop import DeadlineMonitor
from leadstreak.notifications.bus import NotificationBus
from leadstreak.recovery.workflow import RecoveryWorkflow
from leadstreak.staking.validator import StakeValidator
from leadstreak.staking.wallet import IdentityProvider, SimulatedWalletProvider, WalletSession
from leadstreak.tasks import analytics
from leadstreak.tasks.analytics import TaskSort
from leadstreak.tasks.service import CommitmentService
from leadstreak.tasks.store import TaskStore


# --- Request/Response Models ---

class DepositRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)


class MonitorConfigRequest(BaseModel):
    interval_seconds: float = Field(gt=0)


class MonitorTriggerResponse(BaseModel):
    events: list
    tick_count: int


class ReasonRequest(BaseModel):
    reason: MissReason


class DiscoverRequest(BaseModel):
    niche: str
    location: str
    goal: str


class PersonalizeRequest(BaseModel):
    value_prop: Optional[str] = None


class ApproveRequest(BaseModel):
    personalized_message: Optional[str] = None


class FollowUpRequest(BaseModel):
    template: Optional[str] = None


def _http_error(e: LeadStreakError) -> HTTPException:
    """Map an engine error to the HTTP status the client should see."""
    if isinstance(e, (TaskNotFoundError, LeadNotFoundError)):
        return HTTPException(404, f"Not found: {e.args[0]}")
    if isinstance(e, InvalidInputError):
        return HTTPException(422, str(e))
    if isinstance(e, IdentityAcquisitionError):
        return HTTPException(503, str(e))
    return HTTPException(409, str(e))


# --- Application Factory ---

def create_app(
    config: Optional[EngineConfig] = None,
    identity_provider: Optional[IdentityProvider] = None,
    advisory_backend: Optional[AdvisoryBackend] = None,
    task_store: Optional[TaskStore] = None,
    lead_store: Optional[LeadStore] = None,
    journal: Optional[LedgerJournal] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = config or EngineConfig()

    # Initialize components
    notifications = NotificationBus()
    ts = task_store or TaskStore()
    lds = lead_store or LeadStore()
    ledger = Ledger(
        initial_balance=config.initial_balance,
        journal=journal or LedgerJournal(config.journal_db_path),
    )
    wallet = WalletSession(
        provider=identity_provider or SimulatedWalletProvider(config.identity_latency_seconds),
        timeout_seconds=config.identity_timeout_seconds,
    )
    validator = StakeValidator(
        ledger, wallet, notifications, deposit_amount=config.deposit_amount
    )
    commitments = CommitmentService(ts, ledger, validator)
    advisory = AdvisoryService(
        backend=advisory_backend or create_backend(config.advisory_backend, config.advisory_model),
        timeout_seconds=config.advisory_timeout_seconds,
        max_retries=config.advisory_max_retries,
        model=config.advisory_model,
        deep_model=config.advisory_deep_model,
    )
    recovery = RecoveryWorkflow(
        ts,
        commitments,
        advisory,
        notifications,
        default_stake=config.default_recovery_stake,
        replacement_deadline=timedelta(hours=config.replacement_deadline_hours),
    )
    monitor = DeadlineMonitor(
        ts,
        ledger,
        recovery,
        notifications,
        interval_seconds=config.monitor_interval_seconds,
    )
    bridge = LeadToTaskBridge(
        lds,
        commitments,
        stake_amount=config.lead_conversion_stake,
        deadline=timedelta(hours=config.lead_task_deadline_hours),
    )
    pipeline = LeadPipeline(lds, advisory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.monitor_autostart:
            monitor.start()
        yield
        await monitor.stop()

    app = FastAPI(
        title="LeadStreak API",
        description="LeadStreak: Commitment Lifecycle Engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in endpoints
    app.state.config = config
    app.state.notifications = notifications
    app.state.task_store = ts
    app.state.lead_store = lds
    app.state.ledger = ledger
    app.state.wallet = wallet
    app.state.validator = validator
    app.state.commitments = commitments
    app.state.advisory = advisory
    app.state.recovery = recovery
    app.state.monitor = monitor
    app.state.bridge = bridge
    app.state.pipeline = pipeline

    def stake_refused() -> HTTPException:
        """A stake was not validated: either no wallet, or not enough balance."""
        if not wallet.is_connected:
            return HTTPException(503, "Wallet connection failed. Connect a wallet and retry.")
        shortfall = validator.shortfall
        return HTTPException(402, {
            "message": "Insufficient balance to stake this commitment.",
            "requested": str(shortfall.requested) if shortfall else None,
            "available": str(ledger.balance),
            "top_up_amount": str(config.deposit_amount),
            "top_up": "POST /ledger/deposit",
        })

    # === TASKS ===

    @app.get("/tasks")
    def list_tasks(
        category: Optional[TaskCategory] = None,
        due_within_24h: bool = False,
        sort_by: TaskSort = TaskSort.CREATED_AT,
    ):
        """Open commitments, filtered and sorted."""
        tasks = analytics.filter_tasks(
            ts.list_all(),
            category=category,
            due_within_24h=due_within_24h,
            sort_by=sort_by,
        )
        return [t.model_dump(mode="json") for t in tasks]

    @app.get("/tasks/missed")
    def list_missed_tasks():
        """Missed commitments, newest first."""
        return [t.model_dump(mode="json") for t in analytics.missed_tasks(ts.list_all())]

    @app.get("/tasks/{task_id}")
    def get_task(task_id: str):
        task = ts.get(task_id)
        if not task:
            raise HTTPException(404, "Task not found")
        return task.model_dump(mode="json")

    @app.post("/tasks", status_code=201)
    async def create_task(draft: CommitmentDraft):
        """Stake a manual commitment linked to a lead profile."""
        try:
            task = await commitments.create_commitment(draft)
        except LeadStreakError as e:
            raise _http_error(e)
        if task is None:
            raise stake_refused()
        return task.model_dump(mode="json")

    @app.post("/tasks/{task_id}/complete")
    async def complete_task(task_id: str):
        try:
            task = commitments.complete(task_id)
        except LeadStreakError as e:
            raise _http_error(e)
        return task.model_dump(mode="json")

    @app.delete("/tasks/{task_id}")
    async def delete_task(task_id: str):
        """Remove a commitment. The stake is not refunded."""
        if not ts.remove(task_id):
            raise HTTPException(404, "Task not found")
        return {"status": "deleted", "task_id": task_id}

    # === LEDGER ===

    @app.get("/ledger")
    def get_ledger():
        """Current balance and any outstanding shortfall."""
        shortfall = validator.shortfall
        return {
            "balance": str(ledger.balance),
            "balance_usd": str(ledger.balance * config.usd_rate),
            "shortfall": shortfall.model_dump(mode="json") if shortfall else None,
        }

    @app.post("/ledger/deposit")
    async def deposit(req: Optional[DepositRequest] = None):
        """Top up the balance and clear the shortfall."""
        entry = validator.deposit_and_clear(req.amount if req else None)
        return {"balance": str(ledger.balance), "entry": entry.model_dump(mode="json")}

    @app.get("/ledger/journal")
    def get_journal(
        limit: int = 50,
        task_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ):
        """Recent journal entries (optionally from `since` on), or every entry for one commitment."""
        if task_id:
            entries = ledger.journal.query_by_task(task_id)
        else:
            entries = ledger.journal.query_recent(limit=limit, since=to_naive_utc(since))
        return [e.model_dump(mode="json") for e in entries]

    @app.get("/ledger/verify")
    def verify_journal():
        """Verify chain integrity."""
        return {
            "integrity_valid": ledger.journal.verify_chain_integrity(),
            "total_entries": ledger.journal.count(),
        }

    # === WALLET ===

    @app.get("/wallet")
    def get_wallet():
        return {
            "address": wallet.address,
            "connected": wallet.is_connected,
            "connecting": wallet.is_connecting,
        }

    @app.post("/wallet/connect")
    async def connect_wallet():
        try:
            address = await wallet.connect()
        except IdentityAcquisitionError as e:
            notifications.publish(NotificationKind.IDENTITY_FAILED, str(e))
            raise _http_error(e)
        return {"address": address, "connected": True}

    # === MONITOR ===

    @app.get("/monitor/status")
    def monitor_status():
        """Current deadline monitor status."""
        last_tick = monitor.last_tick_at
        return {
            "status": monitor.status,
            "interval_seconds": monitor.interval_seconds,
            "tick_count": monitor.tick_count,
            "last_tick_at": last_tick.isoformat() if last_tick else None,
            "active_with_deadline": len(ts.active_with_deadline()),
        }

    @app.post("/monitor/trigger")
    async def trigger_monitor():
        """Force a monitor tick (for testing)."""
        events = monitor.evaluate_once()
        return MonitorTriggerResponse(
            events=[e.to_dict() for e in events],
            tick_count=monitor.tick_count,
        )

    @app.get("/monitor/config")
    def get_monitor_config():
        return {"interval_seconds": monitor.interval_seconds}

    @app.put("/monitor/config")
    async def update_monitor_config(req: MonitorConfigRequest):
        """Update the tick interval. Takes effect from the next tick."""
        monitor.interval_seconds = req.interval_seconds
        config.monitor_interval_seconds = req.interval_seconds
        return {"interval_seconds": monitor.interval_seconds}

    # === RECOVERY ===

    @app.get("/recovery/current")
    def get_current_recovery():
        """The recovery case awaiting the user, or null."""
        case = recovery.current
        return case.model_dump(mode="json") if case else None

    @app.get("/recovery/cases/{case_id}")
    def get_recovery_case(case_id: str):
        case = recovery.get_case(case_id)
        if not case:
            raise HTTPException(404, "Recovery case not found")
        return case.model_dump(mode="json")

    @app.post("/recovery/reason")
    async def submit_reason(req: ReasonRequest):
        """Explain the miss and fetch a recovery plan."""
        try:
            case = await recovery.submit_reason(req.reason)
        except LeadStreakError as e:
            raise _http_error(e)
        return case.model_dump(mode="json")

    @app.post("/recovery/accept")
    async def accept_recovery():
        """Stake the suggested replacement commitment."""
        try:
            task = await recovery.accept()
        except LeadStreakError as e:
            raise _http_error(e)
        if task is None:
            raise stake_refused()
        return task.model_dump(mode="json")

    @app.post("/recovery/decline")
    async def decline_recovery():
        try:
            case = recovery.decline()
        except LeadStreakError as e:
            raise _http_error(e)
        return case.model_dump(mode="json")

    # === LEADS ===

    @app.post("/leads/discover")
    async def discover_leads(req: DiscoverRequest):
        try:
            result = await pipeline.discover(req.niche, req.location, req.goal)
        except LeadStreakError as e:
            raise _http_error(e)
        return result.model_dump(mode="json")

    @app.get("/leads")
    def list_leads(status: Optional[LeadStatus] = None):
        leads = lds.list_by_status(status) if status else lds.list_all()
        return [lead.model_dump(mode="json") for lead in leads]

    @app.get("/leads/follow-ups")
    def list_follow_up_candidates():
        """Leads whose outreach commitment has been completed."""
        return [lead.model_dump(mode="json") for lead in pipeline.follow_up_candidates(ts)]

    @app.post("/leads/{lead_id}/personalize")
    async def personalize_lead(lead_id: str, req: Optional[PersonalizeRequest] = None):
        try:
            message = await pipeline.personalize(lead_id, req.value_prop if req else None)
        except LeadStreakError as e:
            raise _http_error(e)
        return {"lead_id": lead_id, "message": message}

    @app.post("/leads/{lead_id}/approve", status_code=201)
    async def approve_lead(lead_id: str, req: Optional[ApproveRequest] = None):
        """Approve a lead and stake its outreach commitment."""
        try:
            task = await bridge.convert(
                lead_id, personalized_message=req.personalized_message if req else None
            )
        except LeadStreakError as e:
            raise _http_error(e)
        if task is None:
            raise stake_refused()
        return {
            "lead": lds.require(lead_id).model_dump(mode="json"),
            "task": task.model_dump(mode="json"),
        }

    @app.post("/leads/{lead_id}/sent")
    async def mark_lead_sent(lead_id: str):
        try:
            lead = pipeline.mark_sent(lead_id)
        except LeadStreakError as e:
            raise _http_error(e)
        return lead.model_dump(mode="json")

    @app.post("/leads/{lead_id}/reject")
    async def reject_lead(lead_id: str):
        try:
            lead = pipeline.reject(lead_id)
        except LeadStreakError as e:
            raise _http_error(e)
        return lead.model_dump(mode="json")

    @app.post("/leads/{lead_id}/follow-up")
    async def follow_up_lead(lead_id: str, req: Optional[FollowUpRequest] = None):
        """Scan the inbox and draft the next message."""
        try:
            result = await pipeline.run_follow_up(lead_id, req.template if req else None)
        except LeadStreakError as e:
            raise _http_error(e)
        return result.model_dump(mode="json")

    @app.delete("/leads/{lead_id}")
    async def delete_lead(lead_id: str):
        if not lds.remove(lead_id):
            raise HTTPException(404, "Lead not found")
        return {"status": "deleted", "lead_id": lead_id}

    # === COACHING & ANALYTICS ===

    @app.post("/coach")
    async def coach():
        """Coaching report over every commitment's streak and the real miss count."""
        tasks = ts.list_all()
        report = await advisory.coaching_report(
            analytics.history_summary(tasks),
            missed_count=len(analytics.missed_tasks(tasks)),
        )
        return {"report": report}

    @app.get("/analytics/weekly")
    def weekly_performance():
        buckets = analytics.weekly_performance(ts.list_all(), usd_rate=config.usd_rate)
        return [b.model_dump(mode="json") for b in buckets]

    @app.get("/analytics/summary")
    def analytics_summary():
        tasks = ts.list_all()
        return {
            "total_leads_generated": analytics.total_leads_generated(tasks),
            "missed": len(analytics.missed_tasks(tasks)),
            "unresolved_missed": len(recovery.unresolved_missed()),
            "balance": str(ledger.balance),
        }

    @app.get("/accountability/logs")
    def get_accountability_logs(task_id: Optional[str] = None):
        return [log.model_dump(mode="json") for log in ts.get_logs(task_id)]

    # === NOTIFICATIONS ===

    @app.get("/notifications")
    def get_notifications(limit: int = 50, kind: Optional[NotificationKind] = None):
        return [n.model_dump(mode="json") for n in notifications.recent(limit, kind)]

    return app


# Default application instance
app = create_app()
