"""
Ledger Journal — append-only, hash-chained record of every ledger movement.

Behavioral Contract:
- Append-only. No entry is ever modified or deleted.
- Each entry is hashed and chained to the previous entry (tamper-evident).
- Outcome entries (forfeit, cleared) are journaled even though they leave the
  balance unchanged, so every stake can be traced from debit to outcome.
- Queryable by task, by kind, and by recency.
"""

import hashlib
import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from leadstreak.models.ledger import EntryKind, LedgerEntry


def _sign(entry: LedgerEntry) -> str:
    entry_dict = entry.model_dump(mode="json")
    # Zero out signature before hashing (it's what we're computing)
    entry_dict["signature"] = ""
    entry_bytes = json.dumps(entry_dict, sort_keys=True, default=str).encode()
    return hashlib.sha256(entry_bytes).hexdigest()


def _timestamp(value: datetime) -> str:
    # Fixed width so the column sorts and compares as text
    return value.isoformat(sep=" ", timespec="microseconds")


class LedgerJournal:
    """
    Append-only ledger journal.
    In-process SQLite; `:memory:` unless a path is configured.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the journal table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS ledger_journal (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                amount TEXT NOT NULL,
                balance_after TEXT NOT NULL,
                task_id TEXT,
                signature TEXT NOT NULL,
                prior_entry_hash TEXT,
                recorded_at TEXT NOT NULL,
                entry_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_journal_task_id ON ledger_journal(task_id)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_journal_kind ON ledger_journal(kind)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_journal_recorded_at ON ledger_journal(recorded_at)
        """)
        self._conn.commit()

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append an entry, chaining it to the latest one and signing it."""
        entry.prior_entry_hash = self._get_latest_hash()
        entry.signature = _sign(entry)

        self._conn.execute(
            """
            INSERT INTO ledger_journal (
                id, kind, amount, balance_after, task_id,
                signature, prior_entry_hash, recorded_at, entry_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.kind.value,
                str(entry.amount),
                str(entry.balance_after),
                entry.task_id,
                entry.signature,
                entry.prior_entry_hash,
                _timestamp(entry.recorded_at),
                entry.model_dump_json(),
            ),
        )
        self._conn.commit()
        return entry

    def _get_latest_hash(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM ledger_journal ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _deserialize(self, row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry.model_validate_json(row["entry_json"])

    def get_by_id(self, entry_id: str) -> Optional[LedgerEntry]:
        row = self._conn.execute(
            "SELECT entry_json FROM ledger_journal WHERE id = ?", (entry_id,)
        ).fetchone()
        return self._deserialize(row) if row else None

    def query_by_task(self, task_id: str) -> List[LedgerEntry]:
        """Every movement and outcome for one commitment, oldest first."""
        rows = self._conn.execute(
            "SELECT entry_json FROM ledger_journal WHERE task_id = ? ORDER BY rowid",
            (task_id,),
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def query_by_kind(self, kind: EntryKind) -> List[LedgerEntry]:
        rows = self._conn.execute(
            "SELECT entry_json FROM ledger_journal WHERE kind = ? ORDER BY rowid",
            (kind.value,),
        ).fetchall()
        return [self._deserialize(r) for r in rows]

    def query_recent(
        self, limit: int = 50, since: Optional[datetime] = None
    ) -> List[LedgerEntry]:
        """Get the most recent entries, oldest first. `since` is inclusive."""
        if since is None:
            rows = self._conn.execute(
                "SELECT entry_json FROM ledger_journal ORDER BY rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                """
                SELECT entry_json FROM ledger_journal
                WHERE recorded_at >= ?
                ORDER BY rowid DESC LIMIT ?
                """,
                (_timestamp(since), limit),
            ).fetchall()
        return [self._deserialize(r) for r in reversed(rows)]

    def verify_chain_integrity(self) -> bool:
        """Verify no entries have been tampered with."""
        rows = self._conn.execute(
            "SELECT entry_json, signature FROM ledger_journal ORDER BY rowid"
        ).fetchall()

        for i, row in enumerate(rows):
            entry = self._deserialize(row)
            if entry.signature != _sign(entry) or entry.signature != row["signature"]:
                return False
            expected_prior = rows[i - 1]["signature"] if i > 0 else None
            if entry.prior_entry_hash != expected_prior:
                return False

        return True

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) as cnt FROM ledger_journal").fetchone()
        return row["cnt"]

    def close(self) -> None:
        self._conn.close()
