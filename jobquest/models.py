"""Core data models for Job Quest."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

SCHEMA_VERSION = 1


class InputMode(str, Enum):
    """How the next free-text message from a player is interpreted."""

    IDLE = "idle"
    AWAITING_NOTE = "awaiting_note"
    AWAITING_PROCRASTINATION_REPLY = "awaiting_procrastination_reply"


class EventKind(str, Enum):
    QUEST_COMPLETED = "quest_completed"
    LEVEL_UP = "level_up"
    PENALTY_APPLIED = "penalty_applied"


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class QuestDefinition:
    """Static catalog entry describing a quest and its rewards."""

    key: str
    name: str
    xp_reward: int
    gold_reward_range: Tuple[int, int]

    @property
    def gold_min(self) -> int:
        return self.gold_reward_range[0]

    @property
    def gold_max(self) -> int:
        return self.gold_reward_range[1]


@dataclass(frozen=True)
class Note:
    timestamp: datetime
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": _format_ts(self.timestamp), "text": self.text}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Note":
        return Note(timestamp=_parse_ts(data["timestamp"]), text=str(data["text"]))


@dataclass(frozen=True)
class ActivityEntry:
    """One immutable line of a player's activity log.

    Entries double as the events returned from a mutation so callers can
    notify the player about what just happened.
    """

    timestamp: datetime
    kind: EventKind
    xp_delta: int = 0
    gold_delta: int = 0
    quest_name: Optional[str] = None
    level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": _format_ts(self.timestamp),
            "kind": self.kind.value,
            "xp_delta": self.xp_delta,
            "gold_delta": self.gold_delta,
        }
        if self.quest_name is not None:
            data["quest_name"] = self.quest_name
        if self.level is not None:
            data["level"] = self.level
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ActivityEntry":
        level = data.get("level")
        return ActivityEntry(
            timestamp=_parse_ts(data["timestamp"]),
            kind=EventKind(data["kind"]),
            xp_delta=int(data.get("xp_delta", 0)),
            gold_delta=int(data.get("gold_delta", 0)),
            quest_name=data.get("quest_name"),
            level=int(level) if level is not None else None,
        )


@dataclass
class PlayerRecord:
    """Progression state for a single player."""

    user_id: str
    xp: int = 0
    level: int = 1
    gold: int = 0
    input_mode: InputMode = InputMode.IDLE
    last_activity_at: Optional[datetime] = None
    pending_reminder_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    notes: List[Note] = field(default_factory=list)
    activity_log: List[ActivityEntry] = field(default_factory=list)

    @classmethod
    def new(cls, user_id: str, now: Optional[datetime] = None) -> "PlayerRecord":
        """Build the default record for a player seen for the first time."""

        now = now or datetime.now(timezone.utc)
        return cls(user_id=user_id, last_activity_at=now, created_at=now)

    @property
    def has_pending_reminder(self) -> bool:
        return self.pending_reminder_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "user_id": self.user_id,
            "xp": self.xp,
            "level": self.level,
            "gold": self.gold,
            "input_mode": self.input_mode.value,
            "last_activity_at": _format_ts(self.last_activity_at),
            "pending_reminder_at": _format_ts(self.pending_reminder_at),
            "created_at": _format_ts(self.created_at),
            "notes": [note.to_dict() for note in self.notes],
            "activity_log": [entry.to_dict() for entry in self.activity_log],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PlayerRecord":
        # Keys written by newer releases are ignored; missing ones default.
        return PlayerRecord(
            user_id=str(data["user_id"]),
            xp=int(data.get("xp", 0)),
            level=int(data.get("level", 1)),
            gold=int(data.get("gold", 0)),
            input_mode=InputMode(data.get("input_mode", InputMode.IDLE.value)),
            last_activity_at=_parse_ts(data.get("last_activity_at")),
            pending_reminder_at=_parse_ts(data.get("pending_reminder_at")),
            created_at=_parse_ts(data.get("created_at")),
            notes=[Note.from_dict(item) for item in data.get("notes", [])],
            activity_log=[ActivityEntry.from_dict(item) for item in data.get("activity_log", [])],
        )


__all__ = [
    "ActivityEntry",
    "EventKind",
    "InputMode",
    "Note",
    "PlayerRecord",
    "QuestDefinition",
    "SCHEMA_VERSION",
]
