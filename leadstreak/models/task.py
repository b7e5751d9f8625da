"""Commitment: a staked, deadline-bound recurring action."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TaskCategory(str, Enum):
    LEADS = "Leads"
    MARKETING = "Marketing"
    PRODUCT = "Product"
    HEALTH = "Health"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"
    BROKEN = "broken"       # Reserved; no transition produces it


class ReminderPolicy(str, Enum):
    NONE = "None"
    MINUTES_15 = "15m"
    HOUR_1 = "1h"
    DAY_1 = "1d"

    @property
    def offset(self) -> Optional[timedelta]:
        """How long before the deadline the reminder window opens."""
        return _REMINDER_OFFSETS.get(self)


_REMINDER_OFFSETS = {
    ReminderPolicy.MINUTES_15: timedelta(minutes=15),
    ReminderPolicy.HOUR_1: timedelta(hours=1),
    ReminderPolicy.DAY_1: timedelta(days=1),
}


class SourcePlatform(str, Enum):
    LINKEDIN = "LinkedIn"
    X = "X"
    FACEBOOK = "Facebook"
    WEB = "Web"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are held as naive UTC; aware values are converted first."""
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class SuggestedTask(BaseModel):
    """Replacement commitment proposed by the advisory service."""

    title: str
    description: str = ""
    stake_amount: Decimal = Field(ge=0, default=Decimal("0"), alias="stakeAmount")

    model_config = {"populate_by_name": True}


class Commitment(BaseModel):
    """A commitment and its full lifecycle state."""

    id: str
    title: str
    description: str = ""
    category: TaskCategory = TaskCategory.LEADS
    streak: int = Field(ge=0, default=0)
    last_completed: Optional[date] = None
    stake_amount: Decimal = Field(ge=0)
    status: TaskStatus = TaskStatus.ACTIVE
    created_at: datetime
    deadline: Optional[datetime] = None
    reminder_policy: ReminderPolicy = ReminderPolicy.NONE
    reminder_sent: bool = False

    # Lead linkage
    contact_details: Optional[str] = None
    outreach_message: Optional[str] = None
    source_platform: Optional[SourcePlatform] = None
    lead_id: Optional[str] = None

    # Recovery (set once a miss has been processed)
    missed_reason: Optional[str] = None
    ai_recommendation: Optional[str] = None
    suggested_replacement_task: Optional[SuggestedTask] = None

    @field_validator("created_at", "deadline")
    @classmethod
    def normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @property
    def is_lead_outreach(self) -> bool:
        return bool(self.contact_details and self.outreach_message)


class CommitmentDraft(BaseModel):
    """Manual commitment request. Every manual commitment must name a lead profile."""

    title: str = ""
    description: str = ""
    stake_amount: Decimal = Field(ge=0, default=Decimal("0.1"))
    category: TaskCategory = TaskCategory.LEADS
    deadline: Optional[datetime] = None
    reminder_policy: ReminderPolicy = ReminderPolicy.HOUR_1
    lead_name: str = ""
    profile_url: str = ""

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class AccountabilityAction(str, Enum):
    SUCCESS = "success"
    MISSED = "missed"


class AccountabilityLog(BaseModel):
    """One success or miss, as shared with the accountability circle."""

    id: str
    task_id: str
    action: AccountabilityAction
    timestamp: datetime
    penalty_applied: Optional[Decimal] = None
