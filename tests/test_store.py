"""Tests for the SQLite player store."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest

from jobquest.errors import StorageFailure
from jobquest.models import PlayerRecord
from jobquest.store import SqliteStore

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_get_missing_player_returns_none(tmp_path):
    store = SqliteStore(tmp_path / "players.db")
    assert store.get("nobody") is None


def test_put_then_get_returns_latest_value(tmp_path):
    store = SqliteStore(tmp_path / "players.db")
    record = PlayerRecord.new("u1", T0)
    store.put("u1", record)

    record.xp = 40
    record.level = 2
    store.put("u1", record)

    loaded = store.get("u1")
    assert loaded == record


def test_values_survive_reopening(tmp_path):
    path = tmp_path / "players.db"
    SqliteStore(path).put("u1", PlayerRecord.new("u1", T0))

    reopened = SqliteStore(path)

    assert reopened.get("u1") == PlayerRecord.new("u1", T0)
    assert reopened.user_ids() == ["u1"]


def test_user_ids_lists_every_player(tmp_path):
    store = SqliteStore(tmp_path / "players.db")
    for user_id in ("b", "a", "c"):
        store.put(user_id, PlayerRecord.new(user_id, T0))

    assert store.user_ids() == ["a", "b", "c"]


def test_malformed_row_raises_storage_failure(tmp_path):
    store = SqliteStore(tmp_path / "players.db")
    with sqlite3.connect(store.path) as conn:
        conn.execute(
            "INSERT INTO players (user_id, data, updated_at) VALUES (?, ?, ?)",
            ("broken", "{not json", T0.isoformat()),
        )
        conn.commit()

    with pytest.raises(StorageFailure) as excinfo:
        store.get("broken")
    assert excinfo.value.user_id == "broken"


def test_unopenable_database_raises_storage_failure(tmp_path):
    with pytest.raises(StorageFailure):
        SqliteStore(tmp_path / "missing" / "players.db")


def test_write_failure_raises_storage_failure(tmp_path):
    store = SqliteStore(tmp_path / "players.db")
    with sqlite3.connect(store.path) as conn:
        conn.execute("DROP TABLE players")
        conn.commit()

    with pytest.raises(StorageFailure):
        store.put("u1", PlayerRecord.new("u1", T0))
