"""Player state management and persistence."""
from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .errors import PlayerBusy
from .models import ActivityEntry, PlayerRecord
from .progression import DEFAULT_LEVEL_TABLE, LevelTable, validate_transition
from .store import PersistentStore

logger = logging.getLogger(__name__)

Transform = Callable[[PlayerRecord], Tuple[PlayerRecord, List[ActivityEntry]]]


class _PlayerSlot:
    """Lock plus the authoritative in-memory record for one player."""

    __slots__ = ("lock", "record")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.record: Optional[PlayerRecord] = None


class PlayerStateManager:
    """The single path through which player records are read or written.

    Every player gets its own lock, created on first contact (or at startup
    for players already in the store) and kept for the life of the manager.
    Mutations for one player are totally ordered by lock acquisition; players
    never wait on each other.
    """

    def __init__(
        self,
        store: PersistentStore,
        *,
        table: LevelTable = DEFAULT_LEVEL_TABLE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._table = table
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._registry_lock = threading.Lock()
        self._slots: Dict[str, _PlayerSlot] = {}
        for user_id in store.user_ids():
            self._slot(user_id)
        logger.info("Player state manager tracking %d known players", len(self._slots))

    @property
    def table(self) -> LevelTable:
        return self._table

    def known_users(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._slots)

    def _slot(self, user_id: str) -> _PlayerSlot:
        with self._registry_lock:
            slot = self._slots.get(user_id)
            if slot is None:
                slot = _PlayerSlot()
                self._slots[user_id] = slot
            return slot

    @contextmanager
    def _exclusive(self, user_id: str, timeout: Optional[float]) -> Iterator[_PlayerSlot]:
        slot = self._slot(user_id)
        if timeout is None:
            acquired = slot.lock.acquire()
        else:
            acquired = slot.lock.acquire(timeout=max(0.0, timeout))
        if not acquired:
            raise PlayerBusy(user_id, timeout or 0.0)
        try:
            yield slot
        finally:
            slot.lock.release()

    def _load(self, slot: _PlayerSlot, user_id: str) -> PlayerRecord:
        # Caller holds slot.lock.
        if slot.record is not None:
            return slot.record
        record = self._store.get(user_id)
        if record is None:
            record = PlayerRecord.new(user_id, self._clock())
            self._store.put(user_id, record)
            logger.info("Created player %s", user_id)
        else:
            expected = self._table.level_for(record.xp)
            if record.level != expected:
                logger.warning(
                    "Stored level %d for %s disagrees with xp %d; using %d",
                    record.level,
                    user_id,
                    record.xp,
                    expected,
                )
                record.level = expected
        slot.record = record
        return record

    def get_or_create(self, user_id: str, *, timeout: Optional[float] = None) -> PlayerRecord:
        """Return a snapshot of the player's record, creating it on first contact."""

        with self._exclusive(user_id, timeout) as slot:
            return copy.deepcopy(self._load(slot, user_id))

    def mutate(
        self,
        user_id: str,
        transform: Transform,
        *,
        timeout: Optional[float] = None,
    ) -> List[ActivityEntry]:
        """Apply ``transform`` to the player's record atomically.

        The transform receives a private copy of the current record. Its events
        are appended to the activity log, the result is validated and written
        to the store, and only then does it replace the in-memory record. If
        anything fails along the way (including :class:`StorageFailure`), the
        in-memory record is left exactly as it was and the error propagates.
        """

        with self._exclusive(user_id, timeout) as slot:
            current = self._load(slot, user_id)
            updated, events = transform(copy.deepcopy(current))
            events = list(events)
            if not events and updated == current:
                return events
            if events:
                updated.activity_log = list(updated.activity_log) + events
            validate_transition(current, updated, self._table)
            self._store.put(user_id, updated)
            slot.record = updated
        if events:
            logger.debug(
                "Player %s mutation produced %s",
                user_id,
                ", ".join(event.kind.value for event in events),
            )
        return events


__all__ = ["PlayerStateManager", "Transform"]
