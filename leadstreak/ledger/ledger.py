"""
Ledger — the balance of stakeable capital.

Behavioral Contract:
- Balance never goes negative. `debit` re-checks sufficiency under the lock
  and raises rather than overdraw.
- Never initiates anything; it is mutated by commitment creation (debit),
  deposits and refunds (credit), and journals lifecycle outcomes.
- Every movement is appended to the LedgerJournal.
"""

import logging
from datetime import datetime
from decimal import Decimal
from threading import Lock
from typing import Optional
from uuid import uuid4

from leadstreak.errors import InsufficientFundsError
from leadstreak.ledger.journal import LedgerJournal
from leadstreak.models.ledger import EntryKind, LedgerEntry, ReserveOutcome
from leadstreak.models.task import Commitment

logger = logging.getLogger(__name__)


class Ledger:
    """Process-wide stake balance, owned by whoever constructs it."""

    def __init__(
        self,
        initial_balance: Decimal = Decimal("0"),
        journal: Optional[LedgerJournal] = None,
    ):
        if initial_balance < 0:
            raise ValueError("initial_balance must be non-negative")
        self._balance = Decimal(initial_balance)
        self._lock = Lock()
        self.journal = journal or LedgerJournal()

    @property
    def balance(self) -> Decimal:
        """Read-only snapshot of the available balance."""
        return self._balance

    def reserve(self, amount: Decimal) -> ReserveOutcome:
        """Check whether `amount` can be staked right now. Does not move funds."""
        amount = _non_negative(amount)
        if self._balance >= amount:
            return ReserveOutcome.SUCCESS
        return ReserveOutcome.INSUFFICIENT

    def debit(
        self, amount: Decimal, task_id: Optional[str] = None, memo: str = ""
    ) -> LedgerEntry:
        """Remove `amount` from the balance. Callers validate first."""
        amount = _non_negative(amount)
        with self._lock:
            if self._balance < amount:
                raise InsufficientFundsError(amount, self._balance)
            self._balance -= amount
            return self._record(EntryKind.DEBIT, amount, task_id, memo)

    def credit(
        self,
        amount: Decimal,
        task_id: Optional[str] = None,
        memo: str = "",
        kind: EntryKind = EntryKind.CREDIT,
    ) -> LedgerEntry:
        amount = _non_negative(amount)
        with self._lock:
            self._balance += amount
            return self._record(kind, amount, task_id, memo)

    def deposit(self, amount: Decimal) -> LedgerEntry:
        """Top-up action offered to the user after an insufficient-funds condition."""
        logger.info("Deposit of %s received", amount)
        return self.credit(amount, memo="top-up", kind=EntryKind.DEPOSIT)

    def forfeit(self, task: Commitment) -> LedgerEntry:
        """Journal that a missed commitment's stake is lost. Balance is unchanged."""
        with self._lock:
            return self._record(
                EntryKind.FORFEIT, task.stake_amount, task.id, f"missed: {task.title}"
            )

    def clear(self, task: Commitment) -> LedgerEntry:
        """Journal that a completed commitment's stake is cleared. Balance is unchanged."""
        with self._lock:
            return self._record(
                EntryKind.CLEARED, task.stake_amount, task.id, f"completed: {task.title}"
            )

    def _record(
        self, kind: EntryKind, amount: Decimal, task_id: Optional[str], memo: str
    ) -> LedgerEntry:
        entry = LedgerEntry(
            id=f"led_{uuid4().hex[:12]}",
            kind=kind,
            amount=amount,
            balance_after=self._balance,
            task_id=task_id,
            memo=memo,
            recorded_at=datetime.utcnow(),
        )
        return self.journal.append(entry)


def _non_negative(amount) -> Decimal:
    amount = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    if amount < 0:
        raise ValueError(f"Ledger amounts must be non-negative, got {amount}")
    return amount
