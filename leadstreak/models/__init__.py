"""LeadStreak engine data models."""

from leadstreak.models.advisory import (
    AdviceKind,
    AdvisoryRequest,
    InboxScan,
    LeadDiscovery,
    StructuredLead,
    TaskAdjustment,
)
from leadstreak.models.config import EngineConfig
from leadstreak.models.lead import Lead, LeadPlatform, LeadStatus, ResponseStatus
from leadstreak.models.ledger import EntryKind, LedgerEntry, ReserveOutcome, Shortfall
from leadstreak.models.notification import Notification, NotificationKind
from leadstreak.models.recovery import MissReason, RecoveryCase, RecoveryState
from leadstreak.models.task import (
    AccountabilityAction,
    AccountabilityLog,
    Commitment,
    CommitmentDraft,
    ReminderPolicy,
    SourcePlatform,
    SuggestedTask,
    TaskCategory,
    TaskStatus,
)

__all__ = [
    "AccountabilityAction",
    "AccountabilityLog",
    "AdviceKind",
    "AdvisoryRequest",
    "Commitment",
    "CommitmentDraft",
    "EngineConfig",
    "EntryKind",
    "InboxScan",
    "Lead",
    "LeadDiscovery",
    "LeadPlatform",
    "LeadStatus",
    "LedgerEntry",
    "MissReason",
    "Notification",
    "NotificationKind",
    "RecoveryCase",
    "RecoveryState",
    "ReminderPolicy",
    "ReserveOutcome",
    "ResponseStatus",
    "Shortfall",
    "SourcePlatform",
    "StructuredLead",
    "SuggestedTask",
    "TaskAdjustment",
    "TaskCategory",
    "TaskStatus",
]
