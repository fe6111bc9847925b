"""
Fixed-window attempt limiters for channel verification.

``InMemoryRateLimiter`` is process-local: counters are lost on restart and not
shared between instances, so it only enforces the limit for single-instance
deployments. ``SQLiteRateLimiter`` shares counters between every process that
points at the same database file.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from jobdash.services.oauth_state import Clock, utc_now


class RateLimiter(Protocol):
    def check(self, key: str) -> bool:
        """Record an attempt for ``key`` and return whether it is allowed."""
        ...


@dataclass
class _Window:
    count: int
    reset_at: datetime


class InMemoryRateLimiter:
    """At most ``max_attempts`` per ``window`` for each key."""

    def __init__(
        self,
        *,
        max_attempts: int = 5,
        window: timedelta = timedelta(minutes=15),
        clock: Clock = utc_now,
    ) -> None:
        self._max_attempts = max_attempts
        self._window = window
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            current = self._windows.get(key)
            if current is None or now > current.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self._window)
                return True
            if current.count >= self._max_attempts:
                return False
            current.count += 1
            return True


class SQLiteRateLimiter:
    """Same semantics as :class:`InMemoryRateLimiter`, persisted in SQLite."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        max_attempts: int = 5,
        window: timedelta = timedelta(minutes=15),
        clock: Clock = utc_now,
    ) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._max_attempts = max_attempts
        self._window = window
        self._clock = clock
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path, check_same_thread=False, timeout=10.0, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rate_limit_windows (
                    key TEXT PRIMARY KEY,
                    count INTEGER NOT NULL,
                    reset_at REAL NOT NULL
                )
                """
            )

    def check(self, key: str) -> bool:
        now = self._clock().timestamp()
        conn = self._connect()
        try:
            # IMMEDIATE takes the write lock up front so read-modify-write is atomic.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT count, reset_at FROM rate_limit_windows WHERE key = ?", (key,)
            ).fetchone()
            if row is None or now > row["reset_at"]:
                conn.execute(
                    """
                    INSERT INTO rate_limit_windows (key, count, reset_at)
                    VALUES (?, 1, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        count = 1, reset_at = excluded.reset_at
                    """,
                    (key, now + self._window.total_seconds()),
                )
                allowed = True
            elif row["count"] >= self._max_attempts:
                allowed = False
            else:
                conn.execute(
                    "UPDATE rate_limit_windows SET count = count + 1 WHERE key = ?",
                    (key,),
                )
                allowed = True
            conn.execute("COMMIT")
            return allowed
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


__all__ = ["InMemoryRateLimiter", "RateLimiter", "SQLiteRateLimiter"]
