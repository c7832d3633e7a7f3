"""Exception types raised by the progression core."""
from __future__ import annotations


class JobQuestError(RuntimeError):
    """Base class for recoverable errors raised by the core."""


class StorageFailure(JobQuestError):
    """A read or write against the persistent store did not complete."""

    def __init__(self, message: str, *, user_id: str | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class InvalidQuest(JobQuestError):
    """The requested quest is not part of the catalog."""

    def __init__(self, quest_key: str) -> None:
        super().__init__(f"Unknown quest: {quest_key}")
        self.quest_key = quest_key


class InconsistentMode(JobQuestError):
    """Input arrived while the player was not in the expected input mode."""

    def __init__(self, message: str, *, expected: str | None = None, actual: str | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class PlayerBusy(JobQuestError):
    """Exclusive access to a player could not be acquired in time."""

    def __init__(self, user_id: str, timeout: float) -> None:
        super().__init__(f"Player {user_id} is busy (waited {timeout:.2f}s)")
        self.user_id = user_id
        self.timeout = timeout


class ConfigurationError(JobQuestError):
    """Settings or catalog data failed validation."""


__all__ = [
    "ConfigurationError",
    "InconsistentMode",
    "InvalidQuest",
    "JobQuestError",
    "PlayerBusy",
    "StorageFailure",
]
