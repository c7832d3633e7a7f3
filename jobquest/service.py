"""High-level quest service: the operations chat commands are mapped onto."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from . import progression
from .config import Settings, get_settings
from .models import ActivityEntry, EventKind, Note, PlayerRecord, QuestDefinition
from .quests import QuestCatalog
from .rng import DeterministicRNG
from .state import PlayerStateManager
from .store import PersistentStore, SqliteStore
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)


class QuestService:
    """Coordinates the catalog, the RNG and the player state manager.

    Every inbound operation translates into exactly one
    :meth:`PlayerStateManager.mutate` call (reads use ``get_or_create``).
    Errors from :mod:`jobquest.errors` propagate to the caller unchanged.
    """

    def __init__(
        self,
        db_path: Path,
        settings: Settings | None = None,
        catalog: QuestCatalog | None = None,
        *,
        store: PersistentStore | None = None,
        rng: DeterministicRNG | None = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog or QuestCatalog.from_yaml()
        self.table = self.settings.level_table()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.store = store or SqliteStore(db_path)
        self.players = PlayerStateManager(self.store, table=self.table, clock=self._clock)
        self._rng = rng or DeterministicRNG(self.settings.rng_seed)
        self._telemetry = get_telemetry()

    # Quests ------------------------------------------------------------
    def quests(self) -> List[QuestDefinition]:
        return list(self.catalog)

    def complete_quest(self, user_id: str, quest_key: str) -> List[ActivityEntry]:
        """Grant a quest's rewards and return the resulting events."""

        quest = self.catalog.get(quest_key)
        roll = self._rng.roll_gold(quest)
        now = self._clock()
        events = self.players.mutate(
            user_id,
            lambda record: progression.apply_quest(record, quest, roll, now=now, table=self.table),
        )
        for event in events:
            if event.kind is EventKind.QUEST_COMPLETED:
                self._telemetry.track_game_progression(
                    "quest_completed",
                    event.xp_delta,
                    player_id=user_id,
                    details={"quest": quest.key, "gold": event.gold_delta},
                )
            elif event.kind is EventKind.LEVEL_UP:
                logger.info("Player %s reached level %s", user_id, event.level)
                self._telemetry.track_game_progression("level_up", float(event.level or 0), player_id=user_id)
        return events

    # Notes -------------------------------------------------------------
    def begin_note(self, user_id: str) -> None:
        self.players.mutate(user_id, progression.begin_note)

    def submit_note(self, user_id: str, text: str) -> Note:
        cleaned = text.strip()
        if not cleaned:
            raise ValueError("Note text must not be empty")
        note = Note(timestamp=self._clock(), text=cleaned)
        self.players.mutate(user_id, lambda record: progression.submit_note(record, note))
        return note

    def cancel_input(self, user_id: str) -> None:
        self.players.mutate(user_id, progression.cancel_input)

    def notes(self, user_id: str) -> List[Note]:
        """Return the player's notes, newest first."""

        return list(reversed(self.players.get_or_create(user_id).notes))

    # Reminders ---------------------------------------------------------
    def begin_reminder_reply(self, user_id: str) -> None:
        self.players.mutate(user_id, progression.begin_reminder_reply)

    def reply_to_reminder(self, user_id: str, admits_inactivity: bool) -> List[ActivityEntry]:
        """Close the outstanding reminder; admitting inactivity costs xp right away."""

        now = self._clock()
        events = self.players.mutate(
            user_id,
            lambda record: progression.resolve_reminder(
                record,
                admits_inactivity,
                self.settings.penalty_xp,
                now=now,
                table=self.table,
            ),
        )
        if admits_inactivity:
            self._telemetry.track_reminder("admitted", user_id)
        else:
            self._telemetry.track_reminder("affirmed", user_id)
        return events

    # Profile -----------------------------------------------------------
    def request_profile(self, user_id: str) -> PlayerRecord:
        return self.players.get_or_create(user_id)

    def xp_to_next_level(self, record: PlayerRecord) -> int:
        return self.table.xp_to_next_level(record.xp)

    def journal(self, user_id: str, limit: Optional[int] = None) -> List[ActivityEntry]:
        """Return the most recent activity entries, newest first."""

        limit = self.settings.journal_default_limit if limit is None else limit
        if limit <= 0:
            return []
        record = self.players.get_or_create(user_id)
        return list(reversed(record.activity_log[-limit:]))


__all__ = ["QuestService"]
