"""Durable storage for player records."""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import StorageFailure
from .models import PlayerRecord

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS players (
    user_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class PersistentStore:
    """Key-value contract used by the state manager.

    ``put`` must be atomic and durable once it returns; ``get`` returns the
    most recently stored record or ``None``. Backends raise
    :class:`StorageFailure` for anything that did not complete.
    """

    def get(self, user_id: str) -> Optional[PlayerRecord]:
        raise NotImplementedError

    def put(self, user_id: str, record: PlayerRecord) -> None:
        raise NotImplementedError

    def user_ids(self) -> List[str]:
        raise NotImplementedError


class SqliteStore(PersistentStore):
    """Stores each record as a JSON document in a single SQLite table."""

    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._ensure_schema()

    @property
    def path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout)

    def _ensure_schema(self) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.executescript(_DB_SCHEMA)
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to initialise store at {self._db_path}: {exc}") from exc

    def get(self, user_id: str) -> Optional[PlayerRecord]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT data FROM players WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to read player {user_id}: {exc}", user_id=user_id) from exc
        if row is None:
            return None
        try:
            return PlayerRecord.from_dict(json.loads(row[0]))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageFailure(f"Stored record for {user_id} is malformed: {exc}", user_id=user_id) from exc

    def put(self, user_id: str, record: PlayerRecord) -> None:
        payload = json.dumps(record.to_dict(), ensure_ascii=False)
        now = datetime.now(timezone.utc).isoformat()
        try:
            with closing(self._connect()) as conn:
                conn.execute(
                    "INSERT INTO players (user_id, data, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(user_id) DO UPDATE SET data = excluded.data, "
                    "updated_at = excluded.updated_at",
                    (user_id, payload, now),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to write player {user_id}: {exc}", user_id=user_id) from exc
        logger.debug("Stored player %s (%d bytes)", user_id, len(payload))

    def user_ids(self) -> List[str]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute("SELECT user_id FROM players ORDER BY user_id").fetchall()
        except sqlite3.Error as exc:
            raise StorageFailure(f"Failed to list players: {exc}") from exc
        return [row[0] for row in rows]


__all__ = ["PersistentStore", "SqliteStore"]
