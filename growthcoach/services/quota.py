"""Server-side daily question quotas for the coach assistant.

The quota record is keyed by ``(user_id, day)`` and is owned exclusively by the
assistant backend. Clients only ever see a stale copy of it in the
``remainingQuestions`` / ``dailyLimit`` fields of a reply.

Design notes
------------
- ``try_consume`` is an atomic increment-if-under-limit. Rapid duplicate
  submissions can never push ``used`` past ``limit``.
- ``release`` hands a slot back when the language model failed to answer, so
  failed requests consume nothing.
- The SQLite store performs the check and the increment in a single
  conditional ``UPDATE``; the in-memory store guards its dict with a lock.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import logging
import os
from pathlib import Path
import sqlite3
import threading
from typing import Final, Protocol

from growthcoach.models.chat import QuotaDecision

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT: Final[int] = 5
DEFAULT_QUOTA_TABLE: Final[str] = "assistant_quota"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class QuotaStore(Protocol):
    """Contract for the authoritative per-user daily question counter."""

    daily_limit: int

    def try_consume(self, user_id: str, day: date) -> QuotaDecision:
        """Increment the counter if it is below the limit and report the outcome."""

    def release(self, user_id: str, day: date) -> None:
        """Return one previously consumed slot."""

    def peek(self, user_id: str, day: date) -> QuotaDecision:
        """Return the current counter without modifying it."""


class InMemoryQuotaStore:
    """Process-local quota store used in development and tests."""

    def __init__(self, *, daily_limit: int = DEFAULT_DAILY_LIMIT) -> None:
        if daily_limit < 0:
            raise ValueError("daily_limit must not be negative")
        self.daily_limit = daily_limit
        self._used: dict[tuple[str, date], int] = {}
        self._lock = threading.Lock()

    def try_consume(self, user_id: str, day: date) -> QuotaDecision:
        with self._lock:
            self._evict_before(day)
            used = self._used.get((user_id, day), 0)
            allowed = used < self.daily_limit
            if allowed:
                used += 1
                self._used[(user_id, day)] = used
        return QuotaDecision(user_id=user_id, day=day, allowed=allowed, used=used, limit=self.daily_limit)

    def release(self, user_id: str, day: date) -> None:
        with self._lock:
            used = self._used.get((user_id, day), 0)
            if used > 0:
                self._used[(user_id, day)] = used - 1

    def peek(self, user_id: str, day: date) -> QuotaDecision:
        with self._lock:
            used = self._used.get((user_id, day), 0)
        return QuotaDecision(
            user_id=user_id, day=day, allowed=used < self.daily_limit, used=used, limit=self.daily_limit
        )

    def _evict_before(self, day: date) -> None:
        # Caller holds the lock.
        stale = [key for key in self._used if key[1] < day]
        for key in stale:
            del self._used[key]


class SQLiteQuotaStore:
    """SQLite-backed quota store suitable for a single-host deployment."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        table: str = DEFAULT_QUOTA_TABLE,
    ) -> None:
        if daily_limit < 0:
            raise ValueError("daily_limit must not be negative")
        self.daily_limit = daily_limit
        self._db_path = Path(db_path)
        self._table = table
        self._lock = threading.Lock()

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("PRAGMA journal_mode = WAL;")
        self._bootstrap()

    def _bootstrap(self) -> None:
        with self._conn:
            self._conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    user_id TEXT NOT NULL,
                    day TEXT NOT NULL,
                    used INTEGER NOT NULL DEFAULT 0,
                    daily_limit INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, day),
                    CHECK (used >= 0 AND used <= daily_limit)
                );
                """
            )

    def try_consume(self, user_id: str, day: date) -> QuotaDecision:
        day_key = day.isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT OR IGNORE INTO {self._table} (user_id, day, used, daily_limit, updated_at)"
                " VALUES (?, ?, 0, ?, ?)",
                (user_id, day_key, self.daily_limit, _iso_now()),
            )
            cursor = self._conn.execute(
                f"UPDATE {self._table} SET used = used + 1, updated_at = ?"
                " WHERE user_id = ? AND day = ? AND used < daily_limit",
                (_iso_now(), user_id, day_key),
            )
            allowed = cursor.rowcount == 1
            row = self._fetch(user_id, day_key)

        used, limit = (row["used"], row["daily_limit"]) if row else (0, self.daily_limit)
        return QuotaDecision(user_id=user_id, day=day, allowed=allowed, used=used, limit=limit)

    def release(self, user_id: str, day: date) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                f"UPDATE {self._table} SET used = used - 1, updated_at = ?"
                " WHERE user_id = ? AND day = ? AND used > 0",
                (_iso_now(), user_id, day.isoformat()),
            )

    def peek(self, user_id: str, day: date) -> QuotaDecision:
        with self._lock:
            row = self._fetch(user_id, day.isoformat())
        used, limit = (row["used"], row["daily_limit"]) if row else (0, self.daily_limit)
        return QuotaDecision(user_id=user_id, day=day, allowed=used < limit, used=used, limit=limit)

    def close(self) -> None:
        self._conn.close()

    def _fetch(self, user_id: str, day_key: str) -> sqlite3.Row | None:
        return self._conn.execute(
            f"SELECT used, daily_limit FROM {self._table} WHERE user_id = ? AND day = ?",
            (user_id, day_key),
        ).fetchone()


def _daily_limit_from_env() -> int:
    raw = os.getenv("GROWTHCOACH_DAILY_LIMIT")
    if not raw:
        return DEFAULT_DAILY_LIMIT
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid GROWTHCOACH_DAILY_LIMIT %r; using default", raw, extra={"event": "quota.config"})
        return DEFAULT_DAILY_LIMIT
    return max(value, 0)


def create_quota_store() -> QuotaStore:
    """Build the quota store configured through the environment."""

    daily_limit = _daily_limit_from_env()
    db_path = os.getenv("GROWTHCOACH_QUOTA_DB_PATH")
    if db_path:
        return SQLiteQuotaStore(db_path, daily_limit=daily_limit)
    return InMemoryQuotaStore(daily_limit=daily_limit)


__all__ = [
    "DEFAULT_DAILY_LIMIT",
    "InMemoryQuotaStore",
    "QuotaStore",
    "SQLiteQuotaStore",
    "create_quota_store",
    "utc_today",
]
