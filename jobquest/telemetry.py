"""Telemetry tracking for Job Quest."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

TELEMETRY_ENV_VAR = "JOBQUEST_TELEMETRY_DB"


class MetricType(Enum):
    """Types of metrics tracked."""
    COMMAND_USAGE = "command_usage"
    GAME_PROGRESSION = "game_progression"
    ERROR_RATE = "error_rate"
    PERFORMANCE = "performance"
    REMINDER = "reminder"
    SYSTEM_EVENT = "system_event"


@dataclass
class MetricEvent:
    """Individual metric event."""
    timestamp: float
    metric_type: MetricType
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TelemetryCollector:
    """Buffers metric events and flushes them to SQLite."""

    def __init__(self, db_path: Optional[Path] = None):
        env_path = os.getenv(TELEMETRY_ENV_VAR)
        self.db_path = db_path or Path(env_path or "telemetry.db")
        self._init_database()
        self._metrics_buffer: List[MetricEvent] = []
        self._buffer_lock = threading.Lock()
        self._flush_interval = 60  # seconds
        self._last_flush = time.time()

    def _init_database(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL NOT NULL,
                    metric_type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    value REAL NOT NULL,
                    tags TEXT,
                    metadata TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_metrics_type_name
                ON metrics(metric_type, name)
            """)
            conn.commit()

    def track_command(
        self,
        command_name: str,
        player_id: str,
        guild_id: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
    ):
        """Track Discord command usage."""
        self.record(
            MetricType.COMMAND_USAGE,
            command_name,
            1.0,
            tags={"player_id": player_id, "guild_id": guild_id, "success": str(success)},
            metadata={"duration_ms": duration_ms} if duration_ms else {},
        )

    def track_game_progression(
        self,
        event_name: str,
        value: float,
        player_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """Track quest completions, level-ups and penalties."""
        tags = {}
        if player_id:
            tags["player_id"] = player_id
        self.record(
            MetricType.GAME_PROGRESSION,
            event_name,
            value,
            tags=tags,
            metadata=details or {}
        )

    def track_reminder(self, outcome: str, player_id: str):
        """Track reminder sweep outcomes (sent, penalized, skipped, failed)."""
        self.record(MetricType.REMINDER, outcome, 1.0, tags={"player_id": player_id})

    def track_error(
        self,
        error_type: str,
        command: Optional[str] = None,
        player_id: Optional[str] = None,
        error_details: Optional[str] = None
    ):
        """Track errors and failures."""
        tags = {}
        if command:
            tags["command"] = command
        if player_id:
            tags["player_id"] = player_id
        self.record(
            MetricType.ERROR_RATE,
            error_type,
            1.0,
            tags=tags,
            metadata={"error_details": error_details} if error_details else {}
        )

    def track_performance(
        self,
        operation: str,
        duration_ms: float,
        tags: Optional[Dict[str, str]] = None
    ):
        self.record(
            MetricType.PERFORMANCE,
            operation,
            duration_ms,
            tags=tags or {},
            metadata={"unit": "milliseconds"}
        )

    def track_system_event(
        self,
        event: str,
        *,
        source: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Record scheduler start/stop and similar lifecycle events."""
        tags = {"source": source} if source else {}
        metadata = {"reason": reason} if reason else {}
        self.record(MetricType.SYSTEM_EVENT, event, 1.0, tags=tags, metadata=metadata)

    def record(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Record a metric event."""
        event = MetricEvent(
            timestamp=time.time(),
            metric_type=metric_type,
            name=name,
            value=value,
            tags=tags or {},
            metadata=metadata or {}
        )
        with self._buffer_lock:
            self._metrics_buffer.append(event)
            should_flush = (
                len(self._metrics_buffer) >= 100
                or time.time() - self._last_flush > self._flush_interval
            )
        if should_flush:
            self.flush()

    def flush(self):
        """Flush buffered metrics to database."""
        with self._buffer_lock:
            pending = list(self._metrics_buffer)
            self._metrics_buffer.clear()
            self._last_flush = time.time()
        if not pending:
            return

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.executemany("""
                    INSERT INTO metrics
                    (timestamp, metric_type, name, value, tags, metadata)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, [
                    (
                        event.timestamp,
                        event.metric_type.value,
                        event.name,
                        event.value,
                        json.dumps(event.tags),
                        json.dumps(event.metadata),
                    )
                    for event in pending
                ])
                conn.commit()
            logger.info("Flushed %d metrics to database", len(pending))
        except sqlite3.Error as exc:
            logger.error("Failed to flush metrics: %s", exc)

    def get_counts(self, metric_type: MetricType) -> Dict[str, int]:
        """Return event counts per metric name for one metric type."""
        self.flush()
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name, COUNT(*) FROM metrics WHERE metric_type = ? GROUP BY name",
                (metric_type.value,),
            ).fetchall()
        return {row[0]: row[1] for row in rows}


# Singleton instance
_telemetry: Optional[TelemetryCollector] = None
_telemetry_lock = threading.Lock()


def get_telemetry() -> TelemetryCollector:
    """Get or create singleton telemetry collector."""
    global _telemetry
    with _telemetry_lock:
        if _telemetry is None:
            _telemetry = TelemetryCollector()
        return _telemetry


def reset_telemetry() -> None:
    """Drop the singleton so the next call picks up a new database path."""
    global _telemetry
    with _telemetry_lock:
        if _telemetry is not None:
            _telemetry.flush()
        _telemetry = None


class track_duration:
    """Context manager for tracking operation duration."""

    def __init__(self, operation: str, tags: Optional[Dict[str, str]] = None):
        self.operation = operation
        self.tags = tags or {}
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - self.start_time) * 1000
        telemetry = get_telemetry()
        telemetry.track_performance(self.operation, duration_ms, self.tags)
        if exc_type:
            telemetry.track_error(
                exc_type.__name__,
                command=self.operation,
                error_details=str(exc_val)
            )


__all__ = [
    "MetricType",
    "TelemetryCollector",
    "get_telemetry",
    "reset_telemetry",
    "track_duration",
]
