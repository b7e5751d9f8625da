"""Read-only views over the Task Store: weekly performance, task listings, coaching input."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from leadstreak.models.task import Commitment, TaskCategory, TaskStatus


class TaskSort(str, Enum):
    CREATED_AT = "createdAt"
    DEADLINE = "deadline"
    STAKE = "stake"
    CATEGORY = "category"


class DayBucket(BaseModel):
    day: str
    calendar_date: date
    completed: int
    active: int
    staked_usd_at_risk: Decimal


def weekly_performance(
    tasks: List[Commitment],
    today: Optional[date] = None,
    usd_rate: Decimal = Decimal("100"),
) -> List[DayBucket]:
    """
    Seven daily buckets ending today.

    For each day: commitments completed that day, commitments still open at the
    end of that day, and the USD value of stakes at risk at the end of that day.
    """
    today = today or datetime.utcnow().date()
    buckets = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        end_of_day = datetime.combine(day, time.max)

        completed = sum(1 for t in tasks if t.last_completed == day)
        active = sum(1 for t in tasks if _open_at(t, end_of_day))
        at_risk = sum(
            (t.stake_amount * usd_rate for t in tasks if _at_risk_at(t, end_of_day)),
            Decimal("0"),
        )
        buckets.append(DayBucket(
            day=day.strftime("%a"),
            calendar_date=day,
            completed=completed,
            active=active,
            staked_usd_at_risk=at_risk,
        ))
    return buckets


def _open_at(task: Commitment, moment: datetime) -> bool:
    if task.created_at > moment:
        return False
    if task.last_completed and datetime.combine(task.last_completed, time.min) <= moment:
        return False
    if task.status == TaskStatus.MISSED and task.deadline and task.deadline <= moment:
        return False
    return True


def _at_risk_at(task: Commitment, moment: datetime) -> bool:
    if task.created_at > moment:
        return False
    if task.status == TaskStatus.ACTIVE:
        return True
    return (
        task.status != TaskStatus.COMPLETED
        and task.deadline is not None
        and task.deadline > moment
    )


def filter_tasks(
    tasks: List[Commitment],
    category: Optional[TaskCategory] = None,
    due_within_24h: bool = False,
    sort_by: TaskSort = TaskSort.CREATED_AT,
    now: Optional[datetime] = None,
) -> List[Commitment]:
    """The open-task listing: missed and completed commitments are excluded."""
    now = now or datetime.utcnow()
    result = [
        t for t in tasks
        if t.status not in (TaskStatus.MISSED, TaskStatus.COMPLETED)
    ]
    if category is not None:
        result = [t for t in result if t.category == category]
    if due_within_24h:
        horizon = now + timedelta(hours=24)
        result = [t for t in result if t.deadline and t.deadline < horizon]

    if sort_by == TaskSort.CREATED_AT:
        result.sort(key=lambda t: t.created_at, reverse=True)
    elif sort_by == TaskSort.DEADLINE:
        # Commitments without a deadline go last
        result.sort(key=lambda t: (t.deadline is None, t.deadline or now))
    elif sort_by == TaskSort.STAKE:
        result.sort(key=lambda t: t.stake_amount, reverse=True)
    elif sort_by == TaskSort.CATEGORY:
        result.sort(key=lambda t: t.category.value)
    return result


def missed_tasks(tasks: List[Commitment]) -> List[Commitment]:
    """Missed commitments, newest first."""
    missed = [t for t in tasks if t.status == TaskStatus.MISSED]
    return sorted(missed, key=lambda t: t.created_at, reverse=True)


def history_summary(tasks: List[Commitment]) -> str:
    return ", ".join(f"{t.title}: {t.streak} day streak" for t in tasks)


def total_leads_generated(tasks: List[Commitment]) -> int:
    return sum(1 for t in tasks if t.outreach_message)
