"""Process-wide voice presence dispatcher.

One listener for on_voice_state_update serves every meeting: it looks up the
guild's active meeting in the registry and hands the transition over. Dead
meetings are gone from the registry, so they stop receiving events without
any per-meeting unsubscribe.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    import discord

    from src.meetbot.meetings.registry import MeetingRegistry

logger = structlog.get_logger(__name__)


def _channel_id(state: discord.VoiceState) -> int | None:
    return state.channel.id if state.channel is not None else None


class VoicePresenceDispatcher:
    """Routes voice state updates to the owning guild's meeting."""

    def __init__(self, registry: MeetingRegistry) -> None:
        self._registry = registry

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        # Mute, deafen and stream toggles keep the same channel
        if _channel_id(before) == _channel_id(after):
            return

        meeting = self._registry.find_by_guild(member.guild.id)
        if meeting is None:
            return

        logger.debug(
            "presence.routed",
            guild_id=member.guild.id,
            member_id=member.id,
            before=_channel_id(before),
            after=_channel_id(after),
        )
        await meeting.handle_voice_state_update(member, before, after)
