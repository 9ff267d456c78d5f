"""Prefix command: show or change the guild's command prefix."""

from __future__ import annotations

from discord.ext import commands

from src.meetbot.bot.messages import SUCCESS_COLOR, send_embed, send_error
from src.meetbot.guilds.repository import GuildSettingsRepository
from src.meetbot.guilds.schemas import VALID_PREFIXES, GuildSettingsUpdate, is_valid_prefix


class PrefixCog(commands.Cog, name="Admin"):
    """Server configuration."""

    def __init__(self, guild_settings: GuildSettingsRepository) -> None:
        self._guild_settings = guild_settings

    @commands.command(
        name="prefix",
        usage="<new prefix (optional)>",
        help=(
            "List the prefix for this server, or change the prefix for this "
            "server if one is specified."
        ),
    )
    @commands.guild_only()
    async def prefix(self, ctx: commands.Context, new_prefix: str | None = None) -> None:
        guild_id = str(ctx.guild.id)
        guild_settings = await self._guild_settings.get_or_create(guild_id)
        is_admin = ctx.author.guild_permissions.administrator

        if new_prefix is None:
            description = f"The current server prefix is `{guild_settings.prefix}`."
            if is_admin:
                description += f" Available prefixes include: `{VALID_PREFIXES}`."
            await send_embed(ctx.channel, title="Server prefix", description=description)
            return

        if not is_admin:
            await send_error(
                ctx.channel,
                title="Insufficient permissions",
                description=(
                    'You must have a role with the "Administrator" permission '
                    "enabled to change the server prefix."
                ),
            )
            return

        if not is_valid_prefix(new_prefix):
            await send_error(
                ctx.channel,
                title="Error setting new prefix",
                description=f"Invalid prefix provided. Available prefixes include: `{VALID_PREFIXES}`.",
            )
            return

        updated = await self._guild_settings.update(guild_id, GuildSettingsUpdate(prefix=new_prefix))
        await send_embed(
            ctx.channel,
            title="Prefix set!",
            description=f"The prefix for this server is now `{updated.prefix}`.",
            color=SUCCESS_COLOR,
        )
