"""SQLite-backed store for integration records keyed by (user_id, provider)."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol

from jobdash.models.integration import IntegrationProvider, IntegrationRecord


class IntegrationStore(Protocol):
    """Persistence contract consumed by the integration services."""

    def get(
        self, *, user_id: str, provider: IntegrationProvider
    ) -> Optional[IntegrationRecord]: ...

    def upsert(self, record: IntegrationRecord) -> IntegrationRecord: ...

    def update_tokens(
        self,
        *,
        user_id: str,
        provider: IntegrationProvider,
        access_token_encrypted: str,
        expires_at: datetime,
        refresh_token_encrypted: Optional[str] = None,
    ) -> None: ...

    def update_settings(
        self, *, user_id: str, provider: IntegrationProvider, settings: Dict[str, Any]
    ) -> Optional[IntegrationRecord]: ...

    def disconnect(
        self, *, user_id: str, provider: IntegrationProvider
    ) -> Optional[IntegrationRecord]: ...

    def list_for_user(self, *, user_id: str) -> list[IntegrationRecord]: ...


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class SQLiteIntegrationStore:
    """Integration records in a single table with a (user_id, provider) primary key.

    Writes go through ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent
    writers for the same pair never produce duplicate rows; the last write wins.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_integrations (
                    user_id TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    connected INTEGER NOT NULL DEFAULT 0,
                    access_token TEXT,
                    refresh_token TEXT,
                    expires_at TEXT,
                    settings TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, provider)
                )
                """
            )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> IntegrationRecord:
        return IntegrationRecord(
            user_id=row["user_id"],
            provider=IntegrationProvider(row["provider"]),
            connected=bool(row["connected"]),
            access_token_encrypted=row["access_token"],
            refresh_token_encrypted=row["refresh_token"],
            expires_at=row["expires_at"],
            settings=json.loads(row["settings"] or "{}"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get(
        self, *, user_id: str, provider: IntegrationProvider
    ) -> Optional[IntegrationRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM user_integrations WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def upsert(self, record: IntegrationRecord) -> IntegrationRecord:
        record = record.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_integrations (
                    user_id, provider, connected, access_token, refresh_token,
                    expires_at, settings, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    connected = excluded.connected,
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    expires_at = excluded.expires_at,
                    settings = excluded.settings,
                    updated_at = excluded.updated_at
                """,
                (
                    record.user_id,
                    record.provider.value,
                    int(record.connected),
                    record.access_token_encrypted,
                    record.refresh_token_encrypted,
                    _isoformat(record.expires_at),
                    json.dumps(record.settings),
                    _isoformat(record.created_at),
                    _isoformat(record.updated_at),
                ),
            )
        return record

    def update_tokens(
        self,
        *,
        user_id: str,
        provider: IntegrationProvider,
        access_token_encrypted: str,
        expires_at: datetime,
        refresh_token_encrypted: Optional[str] = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE user_integrations
                SET access_token = ?,
                    refresh_token = COALESCE(?, refresh_token),
                    expires_at = ?,
                    updated_at = ?
                WHERE user_id = ? AND provider = ?
                """,
                (
                    access_token_encrypted,
                    refresh_token_encrypted,
                    _isoformat(expires_at),
                    _isoformat(datetime.now(timezone.utc)),
                    user_id,
                    provider.value,
                ),
            )

    def update_settings(
        self, *, user_id: str, provider: IntegrationProvider, settings: Dict[str, Any]
    ) -> Optional[IntegrationRecord]:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE user_integrations SET settings = ?, updated_at = ?
                WHERE user_id = ? AND provider = ?
                """,
                (
                    json.dumps(settings),
                    _isoformat(datetime.now(timezone.utc)),
                    user_id,
                    provider.value,
                ),
            )
        return self.get(user_id=user_id, provider=provider)

    def disconnect(
        self, *, user_id: str, provider: IntegrationProvider
    ) -> Optional[IntegrationRecord]:
        """Flip ``connected`` off and drop credentials; the row is kept for audit."""
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE user_integrations
                SET connected = 0, access_token = NULL, refresh_token = NULL,
                    expires_at = NULL, updated_at = ?
                WHERE user_id = ? AND provider = ?
                """,
                (_isoformat(datetime.now(timezone.utc)), user_id, provider.value),
            )
        return self.get(user_id=user_id, provider=provider)

    def list_for_user(self, *, user_id: str) -> list[IntegrationRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM user_integrations WHERE user_id = ? ORDER BY provider",
                (user_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]


__all__ = ["IntegrationStore", "SQLiteIntegrationStore"]
