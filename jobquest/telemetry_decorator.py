"""Discord command telemetry decorator."""
from __future__ import annotations

import functools
import time
from typing import Any, Callable

import discord

from .telemetry import get_telemetry


def track_command(func: Callable) -> Callable:
    """Decorator to track Discord command usage and latency."""

    @functools.wraps(func)
    async def wrapper(interaction: discord.Interaction, *args, **kwargs) -> Any:
        telemetry = get_telemetry()
        command_name = func.__name__
        player_id = str(interaction.user.id)
        guild_id = str(interaction.guild_id) if interaction.guild_id else "dm"
        start_time = time.time()
        success = False

        try:
            result = await func(interaction, *args, **kwargs)
            success = True
            return result

        except Exception as e:
            telemetry.track_error(
                type(e).__name__,
                command=command_name,
                player_id=player_id,
                error_details=str(e)
            )
            raise

        finally:
            duration_ms = (time.time() - start_time) * 1000
            telemetry.track_command(
                command_name,
                player_id,
                guild_id,
                success=success,
                duration_ms=duration_ms,
            )

    return wrapper
