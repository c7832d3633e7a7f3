"""Quest catalog loaded from YAML."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from .errors import ConfigurationError, InvalidQuest
from .models import QuestDefinition

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "quests.yaml"


def _parse_quest(entry: Dict[str, Any]) -> QuestDefinition:
    try:
        key = str(entry["key"]).strip()
        name = str(entry.get("name", key)).strip()
        xp = int(entry["xp"])
        gold = entry.get("gold", [0, 0])
        if isinstance(gold, int):
            gold = [gold, gold]
        low, high = (int(value) for value in gold)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Malformed quest entry {entry!r}: {exc}") from exc
    if not key:
        raise ConfigurationError("Quest key must not be empty")
    if xp < 0:
        raise ConfigurationError(f"Quest {key} has negative xp reward")
    if low < 0 or high < low:
        raise ConfigurationError(f"Quest {key} has invalid gold range [{low}, {high}]")
    return QuestDefinition(key=key, name=name, xp_reward=xp, gold_reward_range=(low, high))


class QuestCatalog:
    """Read-only lookup of quest definitions by key."""

    def __init__(self, quests: Iterable[QuestDefinition]) -> None:
        self._quests: Dict[str, QuestDefinition] = {}
        for quest in quests:
            if quest.key in self._quests:
                raise ConfigurationError(f"Duplicate quest key {quest.key}")
            self._quests[quest.key] = quest

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "QuestCatalog":
        path = path or DEFAULT_CATALOG_PATH
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        entries = data.get("quests") or []
        if not entries:
            raise ConfigurationError(f"No quests defined in {path}")
        return cls(_parse_quest(entry) for entry in entries)

    def get(self, key: str) -> QuestDefinition:
        try:
            return self._quests[key]
        except KeyError:
            raise InvalidQuest(key) from None

    def keys(self) -> List[str]:
        return list(self._quests)

    def __contains__(self, key: object) -> bool:
        return key in self._quests

    def __iter__(self) -> Iterator[QuestDefinition]:
        return iter(self._quests.values())

    def __len__(self) -> int:
        return len(self._quests)


__all__ = ["DEFAULT_CATALOG_PATH", "QuestCatalog"]
