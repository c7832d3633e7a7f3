"""Configuration loading utilities for Job Quest."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError
from .progression import LevelTable

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"
SETTINGS_ENV_VAR = "JOBQUEST_SETTINGS"


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    level_thresholds: tuple
    reminder_interval_minutes: float
    grace_period_minutes: float
    penalty_xp: int
    lock_timeout_seconds: float
    journal_default_limit: int
    rng_seed: int

    @property
    def reminder_interval(self) -> timedelta:
        return timedelta(minutes=self.reminder_interval_minutes)

    @property
    def grace_period(self) -> timedelta:
        return timedelta(minutes=self.grace_period_minutes)

    def level_table(self) -> LevelTable:
        return LevelTable(self.level_thresholds)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        levels_cfg = data.get("levels", {}) or {}
        reminder_cfg = data.get("reminders", {}) or {}
        journal_cfg = data.get("journal", {}) or {}
        rng_cfg = data.get("rng", {}) or {}
        try:
            thresholds = tuple(int(v) for v in levels_cfg["thresholds"])
            interval = float(reminder_cfg.get("interval_minutes", 15))
            grace_raw = reminder_cfg.get("grace_minutes")
            grace = float(grace_raw) if grace_raw is not None else interval
            settings = Settings(
                level_thresholds=thresholds,
                reminder_interval_minutes=interval,
                grace_period_minutes=grace,
                penalty_xp=int(reminder_cfg.get("penalty_xp", 10)),
                lock_timeout_seconds=float(reminder_cfg.get("lock_timeout_seconds", 5)),
                journal_default_limit=int(journal_cfg.get("default_limit", 20)),
                rng_seed=int(rng_cfg.get("seed", 1337)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc
        settings.validate()
        return settings

    def validate(self) -> None:
        try:
            self.level_table()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        if self.reminder_interval_minutes <= 0:
            raise ConfigurationError("reminders.interval_minutes must be positive")
        if self.grace_period_minutes <= 0:
            raise ConfigurationError("reminders.grace_minutes must be positive")
        if self.penalty_xp <= 0:
            raise ConfigurationError("reminders.penalty_xp must be positive")
        if self.lock_timeout_seconds <= 0:
            raise ConfigurationError("reminders.lock_timeout_seconds must be positive")


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get(SETTINGS_ENV_VAR)
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Optional[Settings] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["Settings", "SettingsLoader", "get_settings"]
