"""Ledger models: reservation outcomes and journal entries."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ReserveOutcome(str, Enum):
    SUCCESS = "success"
    INSUFFICIENT = "insufficient"


class EntryKind(str, Enum):
    DEPOSIT = "deposit"
    DEBIT = "debit"
    CREDIT = "credit"
    FORFEIT = "forfeit"     # Outcome only; the stake left the balance at debit time
    CLEARED = "cleared"     # Outcome only; stake preserved as cleared on completion


class LedgerEntry(BaseModel):
    """
    One movement or outcome in the ledger journal.

    Entries are hash-chained: `signature` covers the entry with its signature
    blanked, and `prior_entry_hash` is the previous entry's signature.
    """

    id: str
    kind: EntryKind
    amount: Decimal = Field(ge=0)
    balance_after: Decimal = Field(ge=0)
    task_id: Optional[str] = None
    memo: str = ""
    recorded_at: datetime
    signature: str = ""
    prior_entry_hash: Optional[str] = None


class Shortfall(BaseModel):
    """An insufficient-funds condition awaiting a top-up."""

    requested: Decimal
    available: Decimal
    detected_at: datetime
