"""Shared fixtures for the Job Quest test suite."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jobquest import telemetry
from jobquest.config import Settings


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_telemetry(tmp_path, monkeypatch):
    monkeypatch.setenv(telemetry.TELEMETRY_ENV_VAR, str(tmp_path / "telemetry.db"))
    telemetry.reset_telemetry()
    yield
    telemetry.reset_telemetry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings.from_dict(
        {
            "levels": {"thresholds": [0, 40, 100, 180, 280, 400]},
            "reminders": {
                "interval_minutes": 15,
                "grace_minutes": 15,
                "penalty_xp": 10,
                "lock_timeout_seconds": 0.05,
            },
            "journal": {"default_limit": 5},
            "rng": {"seed": 7},
        }
    )
