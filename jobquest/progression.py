"""Pure progression rules: levels, quest rewards, penalties and reminders.

Nothing in this module performs I/O or takes locks. Every transition takes a
record and returns a fresh record plus the list of events it produced; the
input record is never modified, which is what lets the state manager roll back
by simply discarding the result.
"""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from .errors import InconsistentMode
from .models import (
    ActivityEntry,
    EventKind,
    InputMode,
    Note,
    PlayerRecord,
    QuestDefinition,
)

Transition = Tuple[PlayerRecord, List[ActivityEntry]]


class LevelTable:
    """Cumulative xp thresholds, one per level starting at level 1.

    Levels past the end of the table keep costing the last step's xp, so the
    table is total over all non-negative xp values.
    """

    def __init__(self, thresholds: Sequence[int]) -> None:
        values = [int(value) for value in thresholds]
        if len(values) < 2:
            raise ValueError("Level table needs at least two thresholds")
        if values[0] != 0:
            raise ValueError("Level table must start at 0 xp")
        if any(b <= a for a, b in zip(values, values[1:])):
            raise ValueError("Level thresholds must be strictly ascending")
        self._thresholds: Tuple[int, ...] = tuple(values)
        self._tail_step = values[-1] - values[-2]

    @property
    def thresholds(self) -> Tuple[int, ...]:
        return self._thresholds

    def level_for(self, xp: int) -> int:
        if xp < 0:
            raise ValueError(f"xp must be non-negative, got {xp}")
        last = self._thresholds[-1]
        if xp < last:
            return bisect_right(self._thresholds, xp)
        return len(self._thresholds) + (xp - last) // self._tail_step

    def threshold_for(self, level: int) -> int:
        """Return the xp at which ``level`` is reached."""

        if level < 1:
            raise ValueError(f"level must be at least 1, got {level}")
        if level <= len(self._thresholds):
            return self._thresholds[level - 1]
        return self._thresholds[-1] + (level - len(self._thresholds)) * self._tail_step

    def xp_to_next_level(self, xp: int) -> int:
        """Return the cumulative xp needed for the level after ``xp``'s level."""

        return self.threshold_for(self.level_for(xp) + 1)


DEFAULT_LEVEL_TABLE = LevelTable((0, 40, 100, 180, 280, 400, 550, 730, 940, 1180))


def level_for(xp: int, table: LevelTable = DEFAULT_LEVEL_TABLE) -> int:
    return table.level_for(xp)


def _copy(record: PlayerRecord, **changes) -> PlayerRecord:
    changes.setdefault("notes", list(record.notes))
    changes.setdefault("activity_log", list(record.activity_log))
    return replace(record, **changes)


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def apply_quest(
    record: PlayerRecord,
    quest: QuestDefinition,
    roll: int,
    *,
    now: Optional[datetime] = None,
    table: LevelTable = DEFAULT_LEVEL_TABLE,
) -> Transition:
    """Grant a quest's rewards.

    ``roll`` is the gold drawn from the quest's reward range by the caller.
    A completed quest also counts as the answer to an outstanding reminder.
    """

    if record.input_mode is InputMode.AWAITING_NOTE:
        raise InconsistentMode(
            "Finish or cancel the note before completing a quest",
            expected=InputMode.IDLE.value,
            actual=record.input_mode.value,
        )
    if not quest.gold_min <= roll <= quest.gold_max:
        raise ValueError(
            f"Gold roll {roll} outside {quest.key} range {quest.gold_reward_range}"
        )
    now = _now(now)
    new_xp = record.xp + quest.xp_reward
    new_level = table.level_for(new_xp)
    events: List[ActivityEntry] = [
        ActivityEntry(
            timestamp=now,
            kind=EventKind.QUEST_COMPLETED,
            xp_delta=quest.xp_reward,
            gold_delta=roll,
            quest_name=quest.name,
        )
    ]
    for level in range(record.level + 1, new_level + 1):
        events.append(ActivityEntry(timestamp=now, kind=EventKind.LEVEL_UP, level=level))
    updated = _copy(
        record,
        xp=new_xp,
        level=max(record.level, new_level),
        gold=record.gold + roll,
        last_activity_at=now,
        pending_reminder_at=None,
        input_mode=InputMode.IDLE,
    )
    return updated, events


def apply_penalty(
    record: PlayerRecord,
    penalty_amount: int,
    *,
    now: Optional[datetime] = None,
    table: LevelTable = DEFAULT_LEVEL_TABLE,
) -> Transition:
    """Deduct xp for inactivity.

    xp never drops below zero, nor below the threshold of the level already
    reached: levels are never taken away.
    """

    if penalty_amount <= 0:
        raise ValueError(f"penalty_amount must be positive, got {penalty_amount}")
    now = _now(now)
    floor = min(record.xp, table.threshold_for(record.level))
    new_xp = max(0, floor, record.xp - penalty_amount)
    event = ActivityEntry(
        timestamp=now,
        kind=EventKind.PENALTY_APPLIED,
        xp_delta=new_xp - record.xp,
    )
    return _copy(record, xp=new_xp), [event]


def due_for_reminder(record: PlayerRecord, now: datetime, interval: timedelta) -> bool:
    if record.pending_reminder_at is not None:
        return False
    if record.last_activity_at is None:
        return True
    return now - record.last_activity_at >= interval


def reminder_is_overdue(record: PlayerRecord, now: datetime, grace_period: timedelta) -> bool:
    if record.pending_reminder_at is None:
        return False
    return now - record.pending_reminder_at >= grace_period


# Input mode transitions ------------------------------------------------
def _require_mode(record: PlayerRecord, *modes: InputMode, action: str) -> None:
    if record.input_mode not in modes:
        raise InconsistentMode(
            f"Cannot {action} while {record.input_mode.value}",
            expected=",".join(mode.value for mode in modes),
            actual=record.input_mode.value,
        )


def begin_note(record: PlayerRecord) -> Transition:
    _require_mode(record, InputMode.IDLE, InputMode.AWAITING_NOTE, action="start a note")
    return _copy(record, input_mode=InputMode.AWAITING_NOTE), []


def submit_note(record: PlayerRecord, note: Note) -> Transition:
    _require_mode(record, InputMode.AWAITING_NOTE, action="save a note")
    notes = list(record.notes)
    notes.append(note)
    return _copy(record, notes=notes, input_mode=InputMode.IDLE), []


def cancel_input(record: PlayerRecord) -> Transition:
    return _copy(record, input_mode=InputMode.IDLE), []


def mark_reminder_sent(record: PlayerRecord, now: datetime) -> Transition:
    _require_mode(record, InputMode.IDLE, action="send a reminder")
    if record.pending_reminder_at is not None:
        raise InconsistentMode("A reminder is already outstanding")
    return _copy(record, pending_reminder_at=now), []


def retract_reminder(record: PlayerRecord, sent_at: datetime) -> Transition:
    """Withdraw a reminder that could not be delivered."""

    if record.pending_reminder_at != sent_at:
        return _copy(record), []
    mode = record.input_mode
    if mode is InputMode.AWAITING_PROCRASTINATION_REPLY:
        mode = InputMode.IDLE
    return _copy(record, pending_reminder_at=None, input_mode=mode), []


def begin_reminder_reply(record: PlayerRecord) -> Transition:
    _require_mode(
        record,
        InputMode.IDLE,
        InputMode.AWAITING_PROCRASTINATION_REPLY,
        action="answer a reminder",
    )
    if record.pending_reminder_at is None:
        raise InconsistentMode("There is no reminder to answer")
    return _copy(record, input_mode=InputMode.AWAITING_PROCRASTINATION_REPLY), []


def resolve_reminder(
    record: PlayerRecord,
    admits_inactivity: bool,
    penalty_amount: int,
    *,
    now: Optional[datetime] = None,
    table: LevelTable = DEFAULT_LEVEL_TABLE,
) -> Transition:
    """Close an outstanding reminder with the player's answer."""

    _require_mode(
        record,
        InputMode.IDLE,
        InputMode.AWAITING_PROCRASTINATION_REPLY,
        action="answer a reminder",
    )
    if record.pending_reminder_at is None:
        raise InconsistentMode("There is no reminder to answer")
    events: List[ActivityEntry] = []
    if admits_inactivity:
        record, events = apply_penalty(record, penalty_amount, now=now, table=table)
    return _copy(record, pending_reminder_at=None, input_mode=InputMode.IDLE), events


def validate_transition(
    before: PlayerRecord,
    after: PlayerRecord,
    table: LevelTable = DEFAULT_LEVEL_TABLE,
) -> None:
    """Raise ``ValueError`` if ``after`` is not a legal successor of ``before``."""

    if after.user_id != before.user_id:
        raise ValueError("Transition changed the user id")
    if after.xp < 0 or after.gold < 0:
        raise ValueError("xp and gold must stay non-negative")
    if after.level != table.level_for(after.xp):
        raise ValueError(f"Level {after.level} does not match xp {after.xp}")
    if after.level < before.level:
        raise ValueError("Level may never decrease")
    if after.activity_log[: len(before.activity_log)] != before.activity_log:
        raise ValueError("Activity log is append-only")
    if after.notes[: len(before.notes)] != before.notes:
        raise ValueError("Notes are append-only")


__all__ = [
    "DEFAULT_LEVEL_TABLE",
    "LevelTable",
    "Transition",
    "apply_penalty",
    "apply_quest",
    "begin_note",
    "begin_reminder_reply",
    "cancel_input",
    "due_for_reminder",
    "level_for",
    "mark_reminder_sent",
    "reminder_is_overdue",
    "resolve_reminder",
    "retract_reminder",
    "submit_note",
    "validate_transition",
]
