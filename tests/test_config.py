"""Tests for settings and quest catalog loading."""
from __future__ import annotations

from datetime import timedelta

import pytest

from jobquest.config import SETTINGS_ENV_VAR, Settings, SettingsLoader, get_settings
from jobquest.errors import ConfigurationError, InvalidQuest
from jobquest.quests import QuestCatalog


def test_default_settings_load():
    settings = get_settings()

    assert settings.reminder_interval == timedelta(minutes=15)
    assert settings.grace_period == timedelta(minutes=15)
    assert settings.penalty_xp > 0
    assert settings.level_table().level_for(40) == 2


def test_grace_defaults_to_one_interval():
    settings = Settings.from_dict(
        {"levels": {"thresholds": [0, 10]}, "reminders": {"interval_minutes": 30}}
    )
    assert settings.grace_period == timedelta(minutes=30)


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"levels": {"thresholds": [5, 10]}},
        {"levels": {"thresholds": [0, 10]}, "reminders": {"penalty_xp": 0}},
        {"levels": {"thresholds": [0, 10]}, "reminders": {"interval_minutes": "soon"}},
    ],
)
def test_invalid_settings_raise_configuration_error(data):
    with pytest.raises(ConfigurationError):
        Settings.from_dict(data)


def test_settings_loader_caches_and_honours_env(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "levels:\n  thresholds: [0, 25, 60]\nreminders:\n  penalty_xp: 3\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))

    loader = SettingsLoader()
    first = loader.load()

    assert loader.path == path
    assert first.penalty_xp == 3
    assert loader.load() is first
    path.write_text(
        "levels:\n  thresholds: [0, 25, 60]\nreminders:\n  penalty_xp: 4\n",
        encoding="utf-8",
    )
    assert loader.load(force=True).penalty_xp == 4


def test_default_catalog():
    catalog = QuestCatalog.from_yaml()

    assert len(catalog) == 5
    apply = catalog.get("apply")
    assert apply.name == "Apply for a job"
    assert apply.xp_reward == 50
    assert "study" in catalog
    with pytest.raises(InvalidQuest):
        catalog.get("nap")


@pytest.mark.parametrize(
    "body",
    [
        "quests: []\n",
        "quests:\n  - key: a\n    xp: 5\n    gold: [3, 1]\n",
        "quests:\n  - key: a\n    xp: -5\n",
        "quests:\n  - name: no key\n    xp: 5\n",
        "quests:\n  - key: a\n    xp: 5\n  - key: a\n    xp: 6\n",
    ],
)
def test_invalid_catalog_raises_configuration_error(tmp_path, body):
    path = tmp_path / "quests.yaml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        QuestCatalog.from_yaml(path)


def test_fixed_gold_reward(tmp_path):
    path = tmp_path / "quests.yaml"
    path.write_text("quests:\n  - key: a\n    name: A\n    xp: 5\n    gold: 2\n", encoding="utf-8")

    assert QuestCatalog.from_yaml(path).get("a").gold_reward_range == (2, 2)
