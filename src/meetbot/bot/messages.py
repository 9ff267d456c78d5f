"""Embed helpers for status and error messages.

Both helpers swallow Discord send failures after logging them: a message
that cannot be delivered never interrupts meeting tracking or a command.
"""

from __future__ import annotations

import discord
import structlog

from src.meetbot.config import get_settings

logger = structlog.get_logger(__name__)

ERROR_COLOR = 0xFF0000
SUCCESS_COLOR = 0x08FF00


async def send_embed(
    channel: discord.abc.Messageable,
    title: str,
    description: str,
    color: int | None = None,
) -> discord.Message | None:
    """Send an embed in the channel, defaulting to DEFAULT_COLOR_CODE."""
    if color is None:
        color = get_settings().default_color()
    embed = discord.Embed(title=title, description=description, color=color)
    try:
        return await channel.send(embed=embed)
    except discord.HTTPException:
        logger.warning("message.send_failed", title=title, exc_info=True)
        return None


async def send_error(
    channel: discord.abc.Messageable,
    description: str,
    title: str = "An error occurred",
    color: int = ERROR_COLOR,
) -> discord.Message | None:
    """Send a red error embed in the channel."""
    return await send_embed(channel, title=title, description=description, color=color)
