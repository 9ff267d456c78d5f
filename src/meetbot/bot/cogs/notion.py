"""Notion credentials command.

Usage (in a server):
    notion token <token>
    notion database <database ID>
    notion reset

In DMs the target server id is appended as the last argument, e.g.
`notion token <token> <server ID>` or `notion reset <server ID>`, so tokens
need not be pasted into a public channel. Only server administrators may
change credentials; everyone else is ignored.
"""

from __future__ import annotations

import discord
import structlog
from discord.ext import commands

from src.meetbot.bot.messages import send_embed, send_error
from src.meetbot.guilds.repository import GuildSettingsRepository
from src.meetbot.guilds.schemas import GuildSettings, GuildSettingsUpdate

logger = structlog.get_logger(__name__)


class NotionCog(commands.Cog, name="Notion"):
    """Configure the Notion integration."""

    def __init__(self, guild_settings: GuildSettingsRepository) -> None:
        self._guild_settings = guild_settings

    @commands.command(
        name="notion",
        usage="<token|database|reset> <value> [server ID when used in DMs]",
        help="Set Notion API token and database ID values.",
    )
    async def notion(self, ctx: commands.Context, *args: str) -> None:
        subcommand = args[0].lower() if args else None
        value_count = 0 if subcommand == "reset" else 1
        value = args[1] if value_count and len(args) > 1 else None

        if ctx.guild is None:
            server_id = args[1 + value_count] if len(args) > 1 + value_count else None
            target = await self._resolve_dm_target(ctx, server_id)
        else:
            target = await self._resolve_guild_target(ctx)
        if target is None:
            return

        if subcommand != "reset" and not value:
            await send_error(
                ctx.channel,
                title="Invalid second argument",
                description="Second argument shouldn't be empty.",
            )
            return

        if subcommand == "token":
            await self._guild_settings.update(target.guild_id, GuildSettingsUpdate(notion_token=value))
            await send_embed(ctx.channel, title="Notion token set", description="Notion token has been set.")
        elif subcommand == "database":
            await self._guild_settings.update(
                target.guild_id, GuildSettingsUpdate(notion_database_id=value)
            )
            await send_embed(
                ctx.channel,
                title="Notion database ID set",
                description="Notion database ID has been set.",
            )
        elif subcommand == "reset":
            await self._guild_settings.update(
                target.guild_id,
                GuildSettingsUpdate(notion_token=None, notion_database_id=None),
            )
            await send_embed(
                ctx.channel,
                title="Notion credentials reset",
                description="Notion token and database ID have been reset.",
            )
        else:
            await send_error(
                ctx.channel,
                title="Invalid first argument",
                description="First argument should be `token`, `database` or `reset`.",
            )

    async def _resolve_guild_target(self, ctx: commands.Context) -> GuildSettings | None:
        guild_settings = await self._guild_settings.get_or_create(str(ctx.guild.id))
        if not ctx.author.guild_permissions.administrator:
            logger.info("notion.not_admin", user_id=ctx.author.id, guild_id=ctx.guild.id)
            return None
        return guild_settings

    async def _resolve_dm_target(
        self, ctx: commands.Context, server_id: str | None
    ) -> GuildSettings | None:
        if server_id is None:
            await send_error(
                ctx.channel,
                title="Server ID not specified",
                description="You must specify a server to set the value to (if setting value using DM).",
            )
            return None

        guild_settings = await self._guild_settings.get(server_id)
        if guild_settings is None:
            await send_error(ctx.channel, title="Server doesn't exist", description="Unable to find server.")
            return None

        try:
            guild = ctx.bot.get_guild(int(server_id)) or await ctx.bot.fetch_guild(int(server_id))
            member = guild.get_member(ctx.author.id) or await guild.fetch_member(ctx.author.id)
        except (ValueError, discord.NotFound, discord.Forbidden):
            await send_error(
                ctx.channel,
                title="Not a member",
                description="You are not a member of the specified server.",
            )
            return None

        if not member.guild_permissions.administrator:
            logger.info("notion.not_admin", user_id=ctx.author.id, guild_id=server_id)
            return None
        return guild_settings
