"""Tests for telemetry collection."""
from __future__ import annotations

import sqlite3

import pytest

from jobquest.telemetry import MetricType, TelemetryCollector, get_telemetry, track_duration


def test_metrics_are_buffered_until_flush(tmp_path):
    collector = TelemetryCollector(db_path=tmp_path / "metrics.db")
    collector.track_game_progression("quest_completed", 50, player_id="u1")

    with sqlite3.connect(collector.db_path) as conn:
        assert conn.execute("SELECT COUNT(*) FROM metrics").fetchone()[0] == 0

    collector.flush()

    with sqlite3.connect(collector.db_path) as conn:
        row = conn.execute("SELECT metric_type, name, value FROM metrics").fetchone()
    assert row == ("game_progression", "quest_completed", 50.0)


def test_counts_by_metric_type(tmp_path):
    collector = TelemetryCollector(db_path=tmp_path / "metrics.db")
    collector.track_reminder("sent", "u1")
    collector.track_reminder("sent", "u2")
    collector.track_reminder("penalized", "u1")

    assert collector.get_counts(MetricType.REMINDER) == {"sent": 2, "penalized": 1}


def test_singleton_uses_configured_path(tmp_path):
    telemetry = get_telemetry()

    assert telemetry is get_telemetry()
    assert telemetry.db_path == tmp_path / "telemetry.db"


def test_track_duration_records_errors():
    with pytest.raises(KeyError):
        with track_duration("lookup"):
            raise KeyError("missing")

    telemetry = get_telemetry()
    assert telemetry.get_counts(MetricType.PERFORMANCE) == {"lookup": 1}
    assert telemetry.get_counts(MetricType.ERROR_RATE) == {"KeyError": 1}
