"""Meeting registry -- the in-memory directory of tracked meetings.

Owns a mapping of guild id to Meeting and enforces the one-meeting-per-guild
rule. Meetings report back when they deregister themselves (channel emptied,
page deleted) and are purged immediately, so lookups never see DEAD entries.

Tracking state is process-local: a restart forgets every meeting.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from src.meetbot.core.monitoring import meetings_active, meetings_ended_total, meetings_started_total
from src.meetbot.meetings.schemas import EndReason, MeetingOptions
from src.meetbot.meetings.tracker import Meeting
from src.meetbot.notion.client import NotionPageClient

logger = structlog.get_logger(__name__)

NotionClientFactory = Callable[[str], NotionPageClient]


class MeetingAlreadyActiveError(Exception):
    """The guild already has an ACTIVE meeting."""

    def __init__(self, guild_id: int) -> None:
        super().__init__(f"Guild {guild_id} already has an active meeting")
        self.guild_id = guild_id


class MeetingRegistry:
    """Registry of active meetings keyed by guild id.

    Designed for a single asyncio event loop (discord.py + uvicorn); all
    mutations happen between awaits so no locking is needed.

    Args:
        notion_factory: Builds a NotionPageClient from a guild's token.
            Defaults to NotionPageClient.from_settings.
    """

    def __init__(self, notion_factory: NotionClientFactory | None = None) -> None:
        self._meetings: dict[int, Meeting] = {}
        self._notion_factory = notion_factory or NotionPageClient.from_settings

    def create(self, options: MeetingOptions) -> Meeting:
        """Start tracking a voice channel.

        Builds the meeting, registers it and schedules page creation. Returns
        before the Notion page exists.

        Raises:
            MeetingAlreadyActiveError: The guild is already tracking a meeting.
        """
        guild_id = options.voice_channel.guild.id
        if self.find_by_guild(guild_id) is not None:
            raise MeetingAlreadyActiveError(guild_id)

        meeting = Meeting(
            credentials=options.credentials,
            voice_channel=options.voice_channel,
            notification_channel=options.notification_channel,
            notion=self._notion_factory(options.credentials.token),
            on_deregister=self._on_meeting_deregistered,
        )
        self.register(meeting)
        meeting.start()
        return meeting

    def register(self, meeting: Meeting) -> None:
        """Add a meeting, replacing a DEAD entry for the same guild.

        Raises:
            MeetingAlreadyActiveError: Another ACTIVE meeting exists for the guild.
        """
        existing = self._meetings.get(meeting.guild_id)
        if existing is not None and existing is not meeting and existing.is_active:
            raise MeetingAlreadyActiveError(meeting.guild_id)

        self._meetings[meeting.guild_id] = meeting
        meetings_started_total.inc()
        meetings_active.set(len(self))
        logger.info(
            "meeting.registered",
            guild_id=meeting.guild_id,
            channel_id=meeting.channel_id,
            database_id=meeting.database_id,
        )

    def find_by_guild(self, guild_id: int) -> Meeting | None:
        """Return the guild's active meeting, or None."""
        meeting = self._meetings.get(guild_id)
        if meeting is None or not meeting.is_active:
            return None
        return meeting

    def find_by_channel(self, channel_id: int) -> Meeting | None:
        """Return the active meeting tracking a voice channel, or None."""
        for meeting in self._meetings.values():
            if meeting.is_active and meeting.channel_id == channel_id:
                return meeting
        return None

    async def deregister_by_channel(self, channel_id: int) -> bool:
        """Stop tracking the meeting bound to a voice channel.

        Returns:
            True if a meeting was stopped, False if none was tracking the channel.
        """
        meeting = self.find_by_channel(channel_id)
        if meeting is None:
            logger.warning("meeting.not_registered", channel_id=channel_id)
            return False

        meeting.deregister(EndReason.MANUAL)
        await meeting.aclose()
        return True

    def active(self) -> list[Meeting]:
        return [m for m in self._meetings.values() if m.is_active]

    async def close_all(self) -> None:
        """Deregister every meeting (application shutdown)."""
        for meeting in list(self._meetings.values()):
            meeting.deregister(EndReason.MANUAL)
            await meeting.aclose()
        self._meetings.clear()
        meetings_active.set(0)

    def _on_meeting_deregistered(self, meeting: Meeting, reason: EndReason) -> None:
        if self._meetings.get(meeting.guild_id) is meeting:
            del self._meetings[meeting.guild_id]
        meetings_ended_total.labels(reason=reason.value).inc()
        meetings_active.set(len(self))

    def __len__(self) -> int:
        """Return the number of active meetings."""
        return len(self.active())

    def __contains__(self, guild_id: int) -> bool:
        """Check if a guild has an active meeting."""
        return self.find_by_guild(guild_id) is not None
