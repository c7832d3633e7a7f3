"""Discord bot entry point for Job Quest."""
from __future__ import annotations

import asyncio
import atexit
import logging
import os
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from .errors import InconsistentMode, JobQuestError, PlayerBusy, StorageFailure
from .models import ActivityEntry, EventKind, Note, PlayerRecord, QuestDefinition
from .scheduler import ReminderScheduler
from .service import QuestService
from .telemetry import get_telemetry
from .telemetry_decorator import track_command

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LENGTH = 1900
_REMINDER_DELIVERY_TIMEOUT = 30.0

REMINDER_TEXT = (
    "⏰ Still on the hunt? It has been a while since your last quest.\n"
    "Complete a quest, or answer with `/checkin` before the grace period runs out."
)


def _clamp_text(text: str) -> str:
    """Ensure Discord-compatible message length."""

    if len(text) <= _MAX_MESSAGE_LENGTH:
        return text
    return text[: _MAX_MESSAGE_LENGTH - 1].rstrip() + "…"


def _format_message(lines: Iterable[Optional[str]]) -> str:
    message = "\n".join(line for line in lines if line is not None)
    return _clamp_text(message)


def _format_timestamp(entry_time) -> str:
    return entry_time.strftime("%d.%m %H:%M")


def format_event(event: ActivityEntry) -> str:
    if event.kind is EventKind.QUEST_COMPLETED:
        gold = f", +{event.gold_delta} gold" if event.gold_delta else ""
        return f"✅ {event.quest_name} (+{event.xp_delta} XP{gold})"
    if event.kind is EventKind.LEVEL_UP:
        return f"🆙 New level {event.level}"
    return f"⚠️ Penalty: {event.xp_delta} XP"


def format_events(events: Iterable[ActivityEntry]) -> str:
    return _format_message(format_event(event) for event in events)


def format_profile(record: PlayerRecord, next_threshold: int) -> str:
    lines = [
        f"👤 Level: {record.level}",
        f"XP: {record.xp} / {next_threshold}",
        f"💰 Gold: {record.gold}",
    ]
    if record.pending_reminder_at is not None:
        lines.append("⏰ A check-in is waiting for your answer.")
    return _format_message(lines)


def format_journal(entries: Iterable[ActivityEntry]) -> str:
    lines = [f"{_format_timestamp(entry.timestamp)} — {format_event(entry)}" for entry in entries]
    if not lines:
        return "📖 Journal is empty."
    return _format_message(["📖 Journal", ""] + lines)


def format_notes(notes: Iterable[Note]) -> str:
    lines = [f"{_format_timestamp(note.timestamp)} — {note.text}" for note in notes]
    if not lines:
        return "🗒 No notes yet."
    return _format_message(["🗒 Notes", ""] + lines)


def format_quests(quests: Iterable[QuestDefinition]) -> str:
    lines = []
    for quest in quests:
        low, high = quest.gold_reward_range
        gold = f", {low}-{high} gold" if high else ""
        lines.append(f"`{quest.key}` {quest.name}: {quest.xp_reward} XP{gold}")
    return _format_message(["📜 Quests"] + lines)


def describe_error(exc: Exception) -> str:
    if isinstance(exc, PlayerBusy):
        return "Your profile is busy, try again in a moment."
    if isinstance(exc, StorageFailure):
        return "Could not save your progress. Nothing was changed, please retry."
    return str(exc)


def report_failed_dm(user_id: str, purpose: str) -> Callable[[Future], None]:
    """Return a done-callback that logs and counts a DM the loop failed to send."""

    def _callback(future: Future) -> None:
        if future.cancelled():
            logger.warning("Sending %s to %s was cancelled", purpose, user_id)
            return
        exc = future.exception()
        if exc is None:
            return
        logger.error("Failed to send %s to %s: %s", purpose, user_id, exc)
        get_telemetry().track_error(
            type(exc).__name__,
            command=purpose,
            player_id=user_id,
            error_details=str(exc),
        )

    return _callback


def build_bot(db_path: Path, intents: Optional[discord.Intents] = None) -> commands.Bot:
    intents = intents or discord.Intents.default()
    intents.message_content = True
    bot = commands.Bot(command_prefix="/", intents=intents)
    service = QuestService(db_path)
    setattr(bot, "state_service", service)
    scheduler: Optional[ReminderScheduler] = None

    async def _send_dm(user_id: str, content: str) -> None:
        user = bot.get_user(int(user_id)) or await bot.fetch_user(int(user_id))
        await user.send(content)

    def _deliver_reminder(user_id: str) -> None:
        # Called from the scheduler thread; block until Discord accepts the DM.
        future = asyncio.run_coroutine_threadsafe(_send_dm(user_id, REMINDER_TEXT), bot.loop)
        future.result(timeout=_REMINDER_DELIVERY_TIMEOUT)

    def _publish_events(user_id: str, events: List[ActivityEntry]) -> None:
        future = asyncio.run_coroutine_threadsafe(_send_dm(user_id, format_events(events)), bot.loop)
        future.add_done_callback(report_failed_dm(user_id, "event_dm"))

    def _shutdown_scheduler() -> None:  # pragma: no cover - process shutdown hook
        if scheduler is not None:
            scheduler.shutdown()

    atexit.register(_shutdown_scheduler)

    async def _call(interaction: discord.Interaction, func, *args):
        """Run a blocking service call off the event loop, reporting failures."""

        try:
            return True, await asyncio.to_thread(func, *args)
        except (JobQuestError, ValueError) as exc:
            logger.info("Command %s rejected for %s: %s", func.__name__, interaction.user.id, exc)
            await interaction.response.send_message(describe_error(exc), ephemeral=True)
            return False, None

    @bot.event
    async def on_ready() -> None:
        nonlocal scheduler
        logger.info("Job Quest bot connected as %s", bot.user)
        try:
            synced = await bot.tree.sync()
            logger.info("Synced %d commands", len(synced))
        except Exception as exc:  # pragma: no cover - logging only
            logger.exception("Failed to sync commands: %s", exc)
        if scheduler is None:
            scheduler = ReminderScheduler(
                service.players,
                service.settings,
                reminder_publisher=_deliver_reminder,
                event_publisher=_publish_events,
            )
            scheduler.start()

    @bot.event
    async def on_message(message: discord.Message) -> None:
        if message.author.bot or message.guild is not None:
            return
        text = (message.content or "").strip()
        if not text or text.startswith("/"):
            return
        try:
            await asyncio.to_thread(service.submit_note, str(message.author.id), text)
        except InconsistentMode:
            # Plain chatter outside of note mode.
            return
        except (JobQuestError, ValueError) as exc:
            await message.channel.send(describe_error(exc))
            return
        await message.channel.send("✅ Note saved")

    @app_commands.command(name="start", description="Create your profile")
    @track_command
    async def start(interaction: discord.Interaction) -> None:
        ok, record = await _call(interaction, service.request_profile, str(interaction.user.id))
        if not ok:
            return
        message = _format_message(
            ["🎮 Job hunt: the MMORPG", format_profile(record, service.xp_to_next_level(record))]
        )
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="quests", description="List available quests")
    @track_command
    async def quests(interaction: discord.Interaction) -> None:
        await interaction.response.send_message(format_quests(service.quests()), ephemeral=True)

    async def _quest_autocomplete(
        interaction: discord.Interaction, current: str
    ) -> List[app_commands.Choice[str]]:
        needle = current.lower()
        return [
            app_commands.Choice(name=quest.name, value=quest.key)
            for quest in service.quests()
            if needle in quest.key or needle in quest.name.lower()
        ][:25]

    @app_commands.command(name="quest", description="Complete a quest")
    @track_command
    @app_commands.describe(quest="Quest to complete")
    @app_commands.autocomplete(quest=_quest_autocomplete)
    async def quest(interaction: discord.Interaction, quest: str) -> None:
        ok, events = await _call(interaction, service.complete_quest, str(interaction.user.id), quest)
        if not ok:
            return
        await interaction.response.send_message(format_events(events), ephemeral=True)

    @app_commands.command(name="profile", description="Show level, XP and gold")
    @track_command
    async def profile(interaction: discord.Interaction) -> None:
        ok, record = await _call(interaction, service.request_profile, str(interaction.user.id))
        if not ok:
            return
        await interaction.response.send_message(
            format_profile(record, service.xp_to_next_level(record)), ephemeral=True
        )

    @app_commands.command(name="journal", description="Show recent activity")
    @track_command
    @app_commands.describe(limit="How many entries to show")
    async def journal(interaction: discord.Interaction, limit: int | None = None) -> None:
        ok, entries = await _call(interaction, service.journal, str(interaction.user.id), limit)
        if not ok:
            return
        await interaction.response.send_message(format_journal(entries), ephemeral=True)

    @app_commands.command(name="notes", description="Show your notes")
    @track_command
    async def notes(interaction: discord.Interaction) -> None:
        ok, entries = await _call(interaction, service.notes, str(interaction.user.id))
        if not ok:
            return
        await interaction.response.send_message(format_notes(entries), ephemeral=True)

    @app_commands.command(name="note", description="Write a note; send the text as your next DM")
    @track_command
    async def note(interaction: discord.Interaction) -> None:
        ok, _ = await _call(interaction, service.begin_note, str(interaction.user.id))
        if not ok:
            return
        await interaction.response.send_message(
            "✍️ Send the note text as a single direct message.", ephemeral=True
        )

    @app_commands.command(name="cancel", description="Stop writing a note or answering a check-in")
    @track_command
    async def cancel(interaction: discord.Interaction) -> None:
        ok, _ = await _call(interaction, service.cancel_input, str(interaction.user.id))
        if not ok:
            return
        await interaction.response.send_message("Cancelled.", ephemeral=True)

    @app_commands.command(name="checkin", description="Answer the latest accountability reminder")
    @track_command
    @app_commands.describe(procrastinated="Did you skip the job hunt since the last reminder?")
    async def checkin(interaction: discord.Interaction, procrastinated: bool) -> None:
        ok, events = await _call(
            interaction, service.reply_to_reminder, str(interaction.user.id), procrastinated
        )
        if not ok:
            return
        if events:
            message = format_events(events)
        else:
            message = "👍 Noted. Log a quest to prove it!"
        await interaction.response.send_message(message, ephemeral=True)

    bot.tree.add_command(start)
    bot.tree.add_command(quests)
    bot.tree.add_command(quest)
    bot.tree.add_command(profile)
    bot.tree.add_command(journal)
    bot.tree.add_command(notes)
    bot.tree.add_command(note)
    bot.tree.add_command(cancel)
    bot.tree.add_command(checkin)
    return bot


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    db_path = Path(os.environ.get("JOBQUEST_DB", "jobquest.db"))
    bot = build_bot(db_path)
    bot.run(token)


__all__ = ["build_bot", "main", "report_failed_dm"]
