"""Meeting -- one tracked voice channel mirrored into a Notion page.

Lifecycle:
1. start() schedules page initialization in the background: fetch the
   database schema, title the page with today's date, tick the checkbox of
   every member already in the channel, create the page.
2. handle_voice_state_update() reacts to presence transitions routed here by
   VoicePresenceDispatcher: joins tick the member's checkbox, the last leave
   ends the meeting.
3. deregister() makes the meeting DEAD. It is idempotent and terminal.

Attendance is write-once-true: leaving never clears a checkbox.

Failure handling:
- Page creation failures are logged; the meeting keeps running with no page
  and attendance updates become no-ops.
- A patch answered with not-found ends the meeting with a user-visible notice.
- Any other Notion failure is logged and dropped (no retry).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING

import structlog

from src.meetbot.bot.messages import send_embed, send_error
from src.meetbot.meetings.dates import format_meeting_title
from src.meetbot.meetings.schemas import EndReason, MeetingState, NotionCredentials
from src.meetbot.notion.errors import NotionError, PageNotFoundError
from src.meetbot.notion.properties import (
    CheckboxValue,
    DatabaseSchema,
    NotionPage,
    PageProperties,
    TitleValue,
    validate_properties,
)

if TYPE_CHECKING:
    import discord

    from src.meetbot.notion.client import NotionPageClient

logger = structlog.get_logger(__name__)

DeregisterCallback = Callable[["Meeting", EndReason], None]


class Meeting:
    """Tracks one voice channel and mirrors attendance into a Notion page.

    Args:
        credentials: Notion token and database id, fixed for the meeting.
        voice_channel: The voice channel to track.
        notification_channel: Where status embeds are sent.
        notion: Client authenticated with credentials.token.
        on_deregister: Called once when the meeting becomes DEAD.
        today: Date source for the page title.
    """

    def __init__(
        self,
        *,
        credentials: NotionCredentials,
        voice_channel: discord.VoiceChannel,
        notification_channel: discord.abc.Messageable,
        notion: NotionPageClient,
        on_deregister: DeregisterCallback | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._credentials = credentials
        self._voice_channel: discord.VoiceChannel | None = voice_channel
        self._notification_channel = notification_channel
        self._notion = notion
        self._on_deregister = on_deregister
        self._today = today

        self.guild_id: int = voice_channel.guild.id
        self.channel_id: int = voice_channel.id

        self._page: NotionPage | None = None
        self._schema: DatabaseSchema | None = None
        self._init_task: asyncio.Task[None] | None = None
        # Patches are applied one at a time so the page reflects event order
        self._update_lock = asyncio.Lock()

    # ── Accessors ────────────────────────────────────────────────────────

    @property
    def voice_channel(self) -> discord.VoiceChannel | None:
        """The tracked voice channel, or None once the meeting is dead."""
        return self._voice_channel

    @property
    def database_id(self) -> str:
        """The Notion database pages are created in."""
        return self._credentials.database_id

    @property
    def page(self) -> NotionPage | None:
        return self._page

    @property
    def state(self) -> MeetingState:
        return MeetingState.ACTIVE if self._voice_channel is not None else MeetingState.DEAD

    @property
    def is_active(self) -> bool:
        return self._voice_channel is not None

    # ── Page Initialization ──────────────────────────────────────────────

    def start(self) -> asyncio.Task[None]:
        """Schedule page initialization and return without waiting for it."""
        self._init_task = asyncio.create_task(
            self.initialize_page(), name=f"meeting-init-{self.channel_id}"
        )
        self._init_task.add_done_callback(self._log_task_failure)
        return self._init_task

    async def wait_initialized(self) -> None:
        """Wait for background page initialization, if one was started."""
        if self._init_task is not None:
            await asyncio.wait([self._init_task])

    def _log_task_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "meeting.init_task_crashed",
                guild_id=self.guild_id,
                channel_id=self.channel_id,
                exc_info=exc,
            )

    def build_initial_properties(self, schema: DatabaseSchema) -> PageProperties:
        """Title the page with today's date and tick present members.

        Only members whose display name is exactly a property of the schema
        are included; duplicates collapse onto the same key.
        """
        properties: PageProperties = {
            schema.title_property: TitleValue(value=format_meeting_title(self._today())),
        }
        if self._voice_channel is None:
            return properties

        for member in self._voice_channel.members:
            name = member.display_name
            if schema.type_of(name) == "checkbox":
                properties[name] = CheckboxValue(value=True)
        return properties

    async def initialize_page(self) -> None:
        """Create the meeting's Notion page.

        Failures are logged and leave the meeting without a page.
        """
        database_id = self._credentials.database_id
        try:
            schema = await self._notion.fetch_schema(database_id)
            properties = self.build_initial_properties(schema)
            validate_properties(properties, schema)
            page = await self._notion.create_page(database_id, properties)
        except NotionError as exc:
            logger.warning(
                "meeting.page_create_failed",
                guild_id=self.guild_id,
                database_id=database_id,
                error=str(exc),
                status=exc.status,
            )
            return

        if not self.is_active:
            # Meeting ended while the page was being created
            logger.info("meeting.page_created_after_end", page_id=page.id)
            return

        self._schema = schema
        self._page = page
        logger.info(
            "meeting.page_initialized",
            guild_id=self.guild_id,
            page_id=page.id,
            attendees=[name for name, prop in properties.items() if prop.type == "checkbox"],
        )

    # ── Presence Events ──────────────────────────────────────────────────

    async def handle_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Route a presence transition to the join or leave handler."""
        tracked = self._voice_channel
        if tracked is None:
            return

        was_here = before.channel is not None and before.channel.id == tracked.id
        is_here = after.channel is not None and after.channel.id == tracked.id

        if is_here and not was_here:
            await self.on_member_join(member)
        elif was_here and not is_here:
            await self.on_member_leave(member)

    async def on_member_join(self, member: discord.Member) -> None:
        logger.info(
            "meeting.member_joined",
            member=member.display_name,
            channel_id=self.channel_id,
        )
        if self._page is None or not self._page.has_property(member.display_name):
            return
        await self.update_remote_attribute(member.display_name, True)

    async def on_member_leave(self, member: discord.Member) -> None:
        logger.info(
            "meeting.member_left",
            member=member.display_name,
            channel_id=self.channel_id,
        )
        tracked = self._voice_channel
        if tracked is None or len(tracked.members) > 0:
            return

        if self.deregister(EndReason.EMPTY_CHANNEL):
            await send_embed(
                self._notification_channel,
                title="Meeting ended",
                description="Run `new` to start tracking a new meeting.",
            )
            await self.aclose()

    # ── Remote Updates ───────────────────────────────────────────────────

    async def update_remote_attribute(self, name: str, value: bool) -> None:
        """Set a checkbox property on the meeting page.

        No-op without a page. On not-found the meeting is ended and the
        notification channel is told the page was deleted.
        """
        async with self._update_lock:
            if self._page is None:
                return
            page_id = self._page.id
            properties: PageProperties = {name: CheckboxValue(value=value)}
            try:
                if self._schema is not None:
                    validate_properties(properties, self._schema)
                page = await self._notion.patch_page(page_id, properties)
            except PageNotFoundError:
                logger.warning(
                    "meeting.page_deleted",
                    guild_id=self.guild_id,
                    page_id=page_id,
                )
                if self.deregister(EndReason.PAGE_DELETED):
                    await send_error(
                        self._notification_channel,
                        title="Notion page deleted",
                        description=(
                            "The Notion page tracking the meeting was deleted. "
                            "Start a new meeting with `new` to begin tracking updates."
                        ),
                    )
                    await self.aclose()
                return
            except NotionError as exc:
                logger.warning(
                    "meeting.page_update_failed",
                    guild_id=self.guild_id,
                    property=name,
                    error=str(exc),
                    status=exc.status,
                )
                return

            if self.is_active:
                self._page = page

    # ── Teardown ─────────────────────────────────────────────────────────

    def deregister(self, reason: EndReason = EndReason.MANUAL) -> bool:
        """Stop tracking the voice channel and the Notion page.

        Returns:
            True on the first call, False if the meeting was already dead.
        """
        if self._voice_channel is None:
            return False

        self._voice_channel = None
        self._page = None
        logger.info(
            "meeting.deregistered",
            guild_id=self.guild_id,
            channel_id=self.channel_id,
            reason=reason.value,
        )
        if self._on_deregister is not None:
            self._on_deregister(self, reason)
        return True

    async def aclose(self) -> None:
        """Cancel pending initialization and release the Notion client."""
        task = self._init_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        await self._notion.aclose()

    def __repr__(self) -> str:
        return (
            f"<Meeting guild={self.guild_id} channel={self.channel_id} "
            f"state={self.state.value}>"
        )
