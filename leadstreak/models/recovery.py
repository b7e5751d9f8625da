"""Recovery case: one pass through the missed-task recovery workflow."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from leadstreak.models.advisory import TaskAdjustment


class MissReason(str, Enum):
    TOO_BUSY = "Too busy"
    FORGOT = "Forgot"
    TECHNICAL_ISSUES = "Technical issues"
    LACK_OF_MOTIVATION = "Lack of motivation"
    UNDERESTIMATED_DIFFICULTY = "Underestimated difficulty"
    OTHER = "Other"


class RecoveryState(str, Enum):
    MISSED = "missed"                   # Awaiting a reason
    AWAITING_ADVICE = "awaiting_advice"
    ADVISED = "advised"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class RecoveryCase(BaseModel):
    id: str
    task_id: str
    state: RecoveryState = RecoveryState.MISSED
    reason: Optional[MissReason] = None
    advice: Optional[TaskAdjustment] = None
    replacement_task_id: Optional[str] = None
    last_error: Optional[str] = None
    opened_at: datetime
    closed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.state not in (RecoveryState.ACCEPTED, RecoveryState.DECLINED)
