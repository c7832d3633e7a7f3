"""Tests for the QuestService command surface."""
from __future__ import annotations

import pytest

from jobquest import progression
from jobquest.errors import InconsistentMode, InvalidQuest
from jobquest.models import EventKind, InputMode
from jobquest.rng import DeterministicRNG
from jobquest.service import QuestService


@pytest.fixture
def service(tmp_path, settings, clock):
    return QuestService(tmp_path / "players.db", settings=settings, clock=clock)


def _send_reminder(service, clock, user_id="u1"):
    service.players.mutate(user_id, lambda r: progression.mark_reminder_sent(r, clock()))


def test_complete_quest_applies_rewards(service, clock):
    events = service.complete_quest("u1", "apply")

    assert [event.kind for event in events] == [EventKind.QUEST_COMPLETED, EventKind.LEVEL_UP]
    profile = service.request_profile("u1")
    assert profile.xp == 50
    assert profile.level == 2
    assert 1 <= profile.gold <= 3
    assert profile.last_activity_at == clock()
    assert service.xp_to_next_level(profile) == 100


def test_unknown_quest_is_rejected_before_any_state_change(service):
    with pytest.raises(InvalidQuest):
        service.complete_quest("u1", "nap")

    assert service.players.known_users() == []
    assert service.store.get("u1") is None


def test_quest_rejected_while_writing_note(service):
    service.begin_note("u1")

    with pytest.raises(InconsistentMode):
        service.complete_quest("u1", "study")

    assert service.request_profile("u1").xp == 0


def test_note_flow(service, clock):
    service.begin_note("u1")
    note = service.submit_note("u1", "  Ask Initech about the backend role  ")

    assert note.text == "Ask Initech about the backend role"
    assert note.timestamp == clock()
    assert service.notes("u1") == [note]
    assert service.request_profile("u1").input_mode is InputMode.IDLE


def test_note_without_note_mode_is_rejected(service):
    before = service.request_profile("u1")

    with pytest.raises(InconsistentMode):
        service.submit_note("u1", "stray text")

    assert service.request_profile("u1") == before


def test_empty_note_is_rejected(service):
    service.begin_note("u1")
    with pytest.raises(ValueError):
        service.submit_note("u1", "   ")
    assert service.request_profile("u1").input_mode is InputMode.AWAITING_NOTE


def test_cancel_input_leaves_note_mode(service):
    service.begin_note("u1")
    service.cancel_input("u1")

    assert service.request_profile("u1").input_mode is InputMode.IDLE
    service.complete_quest("u1", "study")


def test_reply_without_reminder_is_rejected(service):
    with pytest.raises(InconsistentMode):
        service.reply_to_reminder("u1", admits_inactivity=True)
    with pytest.raises(InconsistentMode):
        service.begin_reminder_reply("u1")


def test_admitting_inactivity_applies_penalty_immediately(service, clock):
    service.complete_quest("u1", "resume")
    _send_reminder(service, clock)
    service.begin_reminder_reply("u1")

    events = service.reply_to_reminder("u1", admits_inactivity=True)

    assert [event.kind for event in events] == [EventKind.PENALTY_APPLIED]
    profile = service.request_profile("u1")
    assert profile.xp == 20
    assert profile.pending_reminder_at is None
    assert profile.input_mode is InputMode.IDLE


def test_affirming_progress_clears_reminder_without_penalty(service, clock):
    service.complete_quest("u1", "resume")
    _send_reminder(service, clock)

    events = service.reply_to_reminder("u1", admits_inactivity=False)

    assert events == []
    profile = service.request_profile("u1")
    assert profile.xp == 30
    assert profile.pending_reminder_at is None


def test_quest_completion_answers_reminder(service, clock):
    _send_reminder(service, clock)
    service.complete_quest("u1", "study")

    assert service.request_profile("u1").pending_reminder_at is None
    with pytest.raises(InconsistentMode):
        service.reply_to_reminder("u1", admits_inactivity=True)


def test_journal_is_newest_first_and_limited(service, clock):
    for key in ("study", "resume", "recruiter"):
        service.complete_quest("u1", key)
        clock.advance(minutes=1)

    journal = service.journal("u1", limit=2)

    # study + resume crosses 40 xp, so a level-up sits between the last two quests.
    assert [(entry.kind, entry.quest_name) for entry in journal] == [
        (EventKind.QUEST_COMPLETED, "Message a recruiter"),
        (EventKind.LEVEL_UP, None),
    ]
    assert service.journal("u1", limit=0) == []
    assert len(service.journal("u1")) == 4


def test_state_survives_restart(tmp_path, settings, clock):
    path = tmp_path / "players.db"
    first = QuestService(path, settings=settings, clock=clock)
    first.complete_quest("u1", "project")
    first.begin_note("u1")
    first.submit_note("u1", "Demo went well")

    second = QuestService(path, settings=settings, clock=clock)

    assert second.players.known_users() == ["u1"]
    assert second.request_profile("u1") == first.request_profile("u1")


def test_gold_rolls_are_reproducible(tmp_path, settings, clock):
    golds = []
    for name in ("a.db", "b.db"):
        service = QuestService(tmp_path / name, settings=settings, rng=DeterministicRNG(99), clock=clock)
        for _ in range(5):
            service.complete_quest("u1", "project")
        golds.append(service.request_profile("u1").gold)

    assert golds[0] == golds[1]
    assert 10 <= golds[0] <= 25


def test_notes_are_listed_newest_first(service, clock):
    for text in ("Call Initech", "Send portfolio"):
        service.begin_note("u1")
        service.submit_note("u1", text)
        clock.advance(minutes=1)

    assert [note.text for note in service.notes("u1")] == ["Send portfolio", "Call Initech"]
