"""MeetBot -- the discord.py client wiring commands, settings and meetings.

Responsibilities:
- Resolve the command prefix per guild from the settings store
- Register the meeting, notion and prefix cogs with their dependencies
- Install the single VoicePresenceDispatcher listener
- Create guild settings when the bot joins a guild
- Log command invocations and failures
- Stop every tracked meeting on shutdown
"""

from __future__ import annotations

import discord
import structlog
from discord.ext import commands

from src.meetbot.bot.cogs.meetings import MeetingCog
from src.meetbot.bot.cogs.notion import NotionCog
from src.meetbot.bot.cogs.prefix import PrefixCog
from src.meetbot.config import Settings, get_settings
from src.meetbot.guilds.repository import GuildAlreadyExistsError, GuildSettingsRepository
from src.meetbot.meetings.dispatcher import VoicePresenceDispatcher
from src.meetbot.meetings.registry import MeetingRegistry

logger = structlog.get_logger(__name__)


async def resolve_prefix(bot: MeetBot, message: discord.Message) -> str:
    """Return the guild's prefix, creating its settings on first sight.

    DMs and storage failures fall back to DEFAULT_PREFIX.
    """
    default = bot.settings.DEFAULT_PREFIX
    if message.guild is None:
        return default
    try:
        guild_settings = await bot.guild_settings.get_or_create(str(message.guild.id))
    except Exception:
        logger.error("prefix.lookup_failed", guild_id=message.guild.id, exc_info=True)
        return default
    return guild_settings.prefix


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.members = True
    intents.voice_states = True
    return intents


class MeetBot(commands.Bot):
    """Discord bot that tracks voice meetings into Notion.

    Args:
        registry: Shared MeetingRegistry (also exposed on /health).
        guild_settings: Repository for per-guild prefix and credentials.
        settings: Application settings; defaults to get_settings().
    """

    def __init__(
        self,
        *,
        registry: MeetingRegistry,
        guild_settings: GuildSettingsRepository,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(
            command_prefix=resolve_prefix,
            intents=build_intents(),
            case_insensitive=True,
        )
        self.settings = settings or get_settings()
        self.registry = registry
        self.guild_settings = guild_settings
        self.dispatcher = VoicePresenceDispatcher(registry)

    async def setup_hook(self) -> None:
        self.add_listener(self.dispatcher.on_voice_state_update, "on_voice_state_update")
        await self.add_cog(MeetingCog(self.registry, self.guild_settings, self.settings))
        await self.add_cog(NotionCog(self.guild_settings))
        await self.add_cog(PrefixCog(self.guild_settings))
        logger.info("bot.setup_complete", cogs=list(self.cogs))

    async def on_ready(self) -> None:
        logger.info(
            "bot.ready",
            user=str(self.user),
            guild_count=len(self.guilds),
        )

    async def on_guild_join(self, guild: discord.Guild) -> None:
        try:
            await self.guild_settings.create(str(guild.id))
        except GuildAlreadyExistsError:
            logger.info("guild.already_exists", guild_id=guild.id)
            return
        logger.info("guild.joined", guild_id=guild.id)

    async def on_command(self, ctx: commands.Context) -> None:
        logger.info(
            "command.invoked",
            command=ctx.command.qualified_name if ctx.command else None,
            user_id=ctx.author.id,
            guild_id=ctx.guild.id if ctx.guild else None,
            content=ctx.message.content,
        )

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.CheckFailure):
            logger.info(
                "command.check_failed",
                command=ctx.command.qualified_name if ctx.command else None,
                user_id=ctx.author.id,
                reason=str(error),
            )
            return
        logger.error(
            "command.failed",
            command=ctx.command.qualified_name if ctx.command else None,
            user_id=ctx.author.id,
            exc_info=getattr(error, "original", error),
        )

    async def close(self) -> None:
        """Stop tracking every meeting before disconnecting."""
        await self.registry.close_all()
        await super().close()
