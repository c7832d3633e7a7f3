"""Job Quest: job-search progression with an accountability scheduler."""

from .errors import (
    ConfigurationError,
    InconsistentMode,
    InvalidQuest,
    JobQuestError,
    PlayerBusy,
    StorageFailure,
)
from .models import ActivityEntry, EventKind, InputMode, Note, PlayerRecord, QuestDefinition
from .state import PlayerStateManager
from .store import PersistentStore, SqliteStore

__all__ = [
    "ActivityEntry",
    "ConfigurationError",
    "EventKind",
    "InconsistentMode",
    "InputMode",
    "InvalidQuest",
    "JobQuestError",
    "Note",
    "PersistentStore",
    "PlayerBusy",
    "PlayerRecord",
    "PlayerStateManager",
    "QuestDefinition",
    "SqliteStore",
    "StorageFailure",
]
