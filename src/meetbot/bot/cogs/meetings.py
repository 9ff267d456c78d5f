"""Meeting commands: start and stop tracking the caller's voice channel."""

from __future__ import annotations

import structlog
from discord.ext import commands

from src.meetbot.bot.messages import send_embed, send_error
from src.meetbot.config import Settings
from src.meetbot.guilds.repository import GuildSettingsRepository
from src.meetbot.meetings.registry import MeetingAlreadyActiveError, MeetingRegistry
from src.meetbot.meetings.schemas import MeetingOptions

logger = structlog.get_logger(__name__)


class MeetingCog(commands.Cog, name="Meetings"):
    """Track voice channel attendance in Notion."""

    def __init__(
        self,
        registry: MeetingRegistry,
        guild_settings: GuildSettingsRepository,
        settings: Settings,
    ) -> None:
        self._registry = registry
        self._guild_settings = guild_settings
        self._settings = settings

    @commands.command(name="new", aliases=["start"], help="Create and track a new meeting.")
    @commands.guild_only()
    async def new_meeting(self, ctx: commands.Context) -> None:
        voice = ctx.author.voice
        if voice is None or voice.channel is None:
            await send_error(
                ctx.channel,
                title="Not in voice channel",
                description="You must join a voice channel first to use this command.",
            )
            return

        guild_settings = await self._guild_settings.get_or_create(str(ctx.guild.id))
        credentials = guild_settings.notion_credentials()
        if credentials is None:
            prefix = guild_settings.prefix
            await send_error(
                ctx.channel,
                title="Notion credentials missing",
                description=(
                    f"Use `{prefix}notion token <token>` to set the token, and "
                    f"`{prefix}notion database <database ID>` to set the database ID."
                ),
            )
            return

        try:
            meeting = self._registry.create(
                MeetingOptions(
                    credentials=credentials,
                    voice_channel=voice.channel,
                    notification_channel=ctx.channel,
                )
            )
        except MeetingAlreadyActiveError:
            await send_error(
                ctx.channel,
                title="Meeting already exists",
                description="Only one meeting can be tracked at a time.",
            )
            return

        base_url = self._settings.NOTION_PAGE_BASE_URL.rstrip("/")
        await send_embed(
            ctx.channel,
            title="Tracking meeting",
            description=f"View Notion database page here: {base_url}/{meeting.database_id}",
        )

    @commands.command(name="end", aliases=["stop"], help="Stop tracking the current meeting.")
    @commands.guild_only()
    async def end_meeting(self, ctx: commands.Context) -> None:
        meeting = self._registry.find_by_guild(ctx.guild.id)
        if meeting is None:
            await send_error(
                ctx.channel,
                title="No meeting in progress",
                description="Run `new` from a voice channel to start tracking a meeting.",
            )
            return

        await self._registry.deregister_by_channel(meeting.channel_id)
        await send_embed(
            ctx.channel,
            title="Meeting ended",
            description="Run `new` to start tracking a new meeting.",
        )
