"""Healing ledger — append-only record of orchestration outcomes.

The orchestrator only needs ``await ledger.record(outcome)``.  Writes are
fire-and-forget from its point of view: implementations log and swallow their
own failures, and the orchestrator guards the call as well.

Implementations:
  InMemoryHealingLedger — list-backed, for tests and single-process hosts
  SqliteHealingLedger   — aiosqlite, WAL journal so appends never block readers

Table schema:

  id                  INTEGER PRIMARY KEY AUTOINCREMENT
  namespace           TEXT    — tenant isolation namespace (project/folder pair)
  errors_found        INTEGER — errors before fixing
  fixes_applied       INTEGER — resolved defects
  success             INTEGER — 0/1
  needs_manual_review INTEGER — 0/1
  outcome             TEXT    — SUCCESS | PARTIAL_SUCCESS | ESCALATED
  errors_json         TEXT    — residual ValidationError list (wire format)
  created_at          REAL    — Unix timestamp

Usage:

    ledger = await SqliteHealingLedger.open("healing.db")
    ...
    rows = await ledger.history("tenant-42/project-a")
    await ledger.close()
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from workflow_healer.taxonomy import HealingResult, ValidationError

logger = logging.getLogger("workflow_healer.ledger")


# ---------------------------------------------------------------------------
# Outcome record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerOutcome:
    """One row of the healing ledger."""

    namespace: str
    errors_found: int
    fixes_applied: int
    success: bool
    needs_manual_review: bool
    timestamp: float
    outcome: str = ""
    errors: tuple[ValidationError, ...] = ()

    @classmethod
    def from_result(
        cls,
        namespace: str,
        result: HealingResult,
        timestamp: float | None = None,
    ) -> LedgerOutcome:
        return cls(
            namespace=namespace,
            errors_found=len(result.errors_before),
            fixes_applied=len(result.fixes_applied),
            success=result.success,
            needs_manual_review=result.needs_manual_review,
            timestamp=time.time() if timestamp is None else timestamp,
            outcome=result.outcome.value,
            errors=result.errors,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "errorsFound": self.errors_found,
            "fixesApplied": self.fixes_applied,
            "success": self.success,
            "needsManualReview": self.needs_manual_review,
            "timestamp": self.timestamp,
            "outcome": self.outcome,
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LedgerOutcome:
        return cls(
            namespace=str(d.get("namespace", "")),
            errors_found=int(d.get("errorsFound", 0)),
            fixes_applied=int(d.get("fixesApplied", 0)),
            success=bool(d.get("success", False)),
            needs_manual_review=bool(d.get("needsManualReview", True)),
            timestamp=float(d.get("timestamp", 0.0)),
            outcome=str(d.get("outcome", "")),
            errors=tuple(ValidationError.from_dict(e) for e in d.get("errors") or []),
        )


class HealingLedger(Protocol):
    async def record(self, outcome: LedgerOutcome) -> None: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryHealingLedger:
    """List-backed ledger.  Appends are single statements, safe under asyncio."""

    def __init__(self) -> None:
        self._entries: list[LedgerOutcome] = []

    @property
    def entries(self) -> list[LedgerOutcome]:
        return list(self._entries)

    async def record(self, outcome: LedgerOutcome) -> None:
        self._entries.append(outcome)

    async def history(self, namespace: str, limit: int = 50) -> list[LedgerOutcome]:
        """Newest first."""
        rows = [e for e in self._entries if e.namespace == namespace]
        rows.sort(key=lambda e: e.timestamp, reverse=True)
        return rows[:limit]


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS healing_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace           TEXT    NOT NULL,
    errors_found        INTEGER NOT NULL,
    fixes_applied       INTEGER NOT NULL,
    success             INTEGER NOT NULL,
    needs_manual_review INTEGER NOT NULL,
    outcome             TEXT    DEFAULT '',
    errors_json         TEXT    DEFAULT '[]',
    created_at          REAL    NOT NULL
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_healing_ledger_namespace
ON healing_ledger (namespace, created_at)
"""

_INSERT = """
INSERT INTO healing_ledger
    (namespace, errors_found, fixes_applied, success, needs_manual_review,
     outcome, errors_json, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT = """
SELECT namespace, errors_found, fixes_applied, success, needs_manual_review,
       outcome, errors_json, created_at
FROM healing_ledger
WHERE namespace = ?
ORDER BY created_at DESC, id DESC
LIMIT ?
"""


class SqliteHealingLedger:
    """Async SQLite-backed append-only ledger.

    Lifecycle:
        ledger = await SqliteHealingLedger.open(db_path)
        await ledger.record(outcome)
        await ledger.close()

    If setup fails the ledger stays disabled: record() becomes a no-op and
    history() returns [].
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        """Open the connection, enable WAL and create the table."""
        import aiosqlite

        try:
            conn = await aiosqlite.connect(self._db_path)
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(_CREATE_TABLE)
            await conn.execute(_CREATE_INDEX)
            await conn.commit()
            self._conn = conn
            logger.info("SqliteHealingLedger ready: %s", self._db_path)
        except Exception as exc:
            logger.error(
                "SqliteHealingLedger: failed to open %s (%s); ledger disabled.",
                self._db_path, exc,
            )
            self._conn = None

    async def close(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            except Exception as exc:
                logger.debug("SqliteHealingLedger close error (ignored): %s", exc)
            finally:
                self._conn = None

    @classmethod
    async def open(cls, db_path: str) -> "SqliteHealingLedger":
        """Factory: create + setup in one call."""
        ledger = cls(db_path)
        await ledger.setup()
        return ledger

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def record(self, outcome: LedgerOutcome) -> None:
        """Append one outcome.  Errors are logged and suppressed."""
        if self._conn is None:
            return
        try:
            errors_json = json.dumps([e.to_dict() for e in outcome.errors], default=str)
            await self._conn.execute(
                _INSERT,
                (
                    outcome.namespace,
                    outcome.errors_found,
                    outcome.fixes_applied,
                    int(outcome.success),
                    int(outcome.needs_manual_review),
                    outcome.outcome,
                    errors_json,
                    outcome.timestamp,
                ),
            )
            await self._conn.commit()
        except Exception as exc:
            logger.error(
                "SqliteHealingLedger: insert failed [%s]: %s", outcome.namespace, exc
            )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def history(self, namespace: str, limit: int = 50) -> list[LedgerOutcome]:
        """Outcomes for ``namespace``, newest first.  [] when unavailable."""
        if self._conn is None:
            return []
        try:
            async with self._conn.execute(_SELECT, (namespace, limit)) as cur:
                rows = await cur.fetchall()
        except Exception as exc:
            logger.error("SqliteHealingLedger.history failed: %s", exc)
            return []

        return [
            LedgerOutcome(
                namespace=row[0],
                errors_found=row[1],
                fixes_applied=row[2],
                success=bool(row[3]),
                needs_manual_review=bool(row[4]),
                outcome=row[5] or "",
                errors=tuple(ValidationError.from_dict(e) for e in json.loads(row[6] or "[]")),
                timestamp=row[7],
            )
            for row in rows
        ]
