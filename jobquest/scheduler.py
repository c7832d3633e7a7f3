"""Background accountability sweep.

Every interval the sweep visits each known player and, under that player's
lock, decides between sending a reminder, penalising an unanswered one, or
doing nothing. Decisions are always made against the record as it is once the
lock is held, so a quest completed a moment earlier is never penalised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from . import progression
from .config import Settings, get_settings
from .errors import JobQuestError, PlayerBusy, StorageFailure
from .models import ActivityEntry, InputMode, PlayerRecord
from .state import PlayerStateManager
from .telemetry import get_telemetry

logger = logging.getLogger(__name__)

ReminderPublisher = Callable[[str], None]
EventPublisher = Callable[[str, List[ActivityEntry]], None]

_NOOP = "noop"
_CONVERSING = "conversing"
_REMINDED = "reminded"
_PENALIZED = "penalized"


@dataclass
class TickReport:
    """What a single sweep did, per player."""

    started_at: datetime
    reminded: List[str] = field(default_factory=list)
    penalized: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class _Decision:
    outcome: str = _NOOP
    sent_at: Optional[datetime] = None


class ReminderScheduler:
    """Runs the inactivity sweep on an APScheduler interval job."""

    JOB_ID = "reminder_sweep"

    def __init__(
        self,
        players: PlayerStateManager,
        settings: Settings | None = None,
        *,
        reminder_publisher: Optional[ReminderPublisher] = None,
        event_publisher: Optional[EventPublisher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        settings = settings or get_settings()
        self.players = players
        self.interval = settings.reminder_interval
        self.grace_period = settings.grace_period
        self.penalty_xp = settings.penalty_xp
        self.lock_timeout = settings.lock_timeout_seconds
        self._reminder_publisher = reminder_publisher
        self._event_publisher = event_publisher
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.scheduler = BackgroundScheduler()

    def start(self) -> None:
        self.scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval.total_seconds(),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        get_telemetry().track_system_event("reminder_scheduler_started", source="scheduler")
        logger.info("Reminder sweep scheduled every %s (grace %s)", self.interval, self.grace_period)

    def shutdown(self) -> None:
        self.scheduler.shutdown(wait=False)
        get_telemetry().track_system_event("reminder_scheduler_stopped", source="scheduler")

    # Sweep -------------------------------------------------------------
    def tick(self) -> TickReport:
        """Evaluate every known player once."""

        report = TickReport(started_at=self._clock())
        telemetry = get_telemetry()
        for user_id in self.players.known_users():
            try:
                decision, events = self._evaluate(user_id)
            except PlayerBusy:
                # Re-evaluated with fresh timestamps on the next tick.
                logger.debug("Skipping %s this tick; player is busy", user_id)
                report.skipped.append(user_id)
                telemetry.track_reminder("skipped", user_id)
                continue
            except StorageFailure as exc:
                logger.warning("Reminder sweep could not update %s: %s", user_id, exc)
                report.failed.append(user_id)
                telemetry.track_error("StorageFailure", command="reminder_sweep", player_id=user_id)
                continue

            if decision.outcome == _REMINDED:
                if self._deliver(user_id, decision.sent_at):
                    report.reminded.append(user_id)
                    telemetry.track_reminder("sent", user_id)
                else:
                    report.failed.append(user_id)
            elif decision.outcome == _PENALIZED:
                report.penalized.append(user_id)
                telemetry.track_reminder("penalized", user_id)
                self._publish_events(user_id, events)
        if report.reminded or report.penalized:
            logger.info(
                "Reminder sweep: %d reminded, %d penalized, %d skipped",
                len(report.reminded),
                len(report.penalized),
                len(report.skipped),
            )
        return report

    def _evaluate(self, user_id: str) -> tuple[_Decision, List[ActivityEntry]]:
        decision = _Decision()

        def transform(record: PlayerRecord):
            now = self._clock()
            if record.input_mode is not InputMode.IDLE:
                decision.outcome = _CONVERSING
                return record, []
            if progression.due_for_reminder(record, now, self.interval):
                decision.outcome = _REMINDED
                decision.sent_at = now
                return progression.mark_reminder_sent(record, now)
            if progression.reminder_is_overdue(record, now, self.grace_period):
                decision.outcome = _PENALIZED
                updated, events = progression.apply_penalty(
                    record, self.penalty_xp, now=now, table=self.players.table
                )
                updated.pending_reminder_at = None
                return updated, events
            return record, []

        events = self.players.mutate(user_id, transform, timeout=self.lock_timeout)
        return decision, events

    def _deliver(self, user_id: str, sent_at: Optional[datetime]) -> bool:
        if self._reminder_publisher is None:
            return True
        try:
            self._reminder_publisher(user_id)
            return True
        except Exception:
            logger.exception("Failed to deliver reminder to %s", user_id)
        get_telemetry().track_reminder("delivery_failed", user_id)
        try:
            self.players.mutate(
                user_id,
                lambda record: progression.retract_reminder(record, sent_at),
                timeout=self.lock_timeout,
            )
        except JobQuestError as exc:
            # The reminder stays pending and will be treated as unanswered.
            logger.warning("Could not retract undelivered reminder for %s: %s", user_id, exc)
        return False

    def _publish_events(self, user_id: str, events: List[ActivityEntry]) -> None:
        if self._event_publisher is None or not events:
            return
        try:
            self._event_publisher(user_id, events)
        except Exception as exc:
            logger.exception("Failed to publish events for %s", user_id)
            get_telemetry().track_error(
                type(exc).__name__, command="publish_events", player_id=user_id, error_details=str(exc)
            )


__all__ = ["BackgroundScheduler", "ReminderScheduler", "TickReport", "get_telemetry"]
