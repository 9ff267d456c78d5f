"""Guild settings repository -- async CRUD over guild_settings.

Uses the session_factory callable pattern: the factory is an async generator
yielding AsyncSession instances (core.database.get_session in production).
Returns GuildSettings schemas, never ORM rows.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.meetbot.config import get_settings
from src.meetbot.guilds.models import GuildSettingsModel
from src.meetbot.guilds.schemas import GuildSettings, GuildSettingsUpdate

logger = structlog.get_logger(__name__)


class GuildNotFoundError(Exception):
    """No settings row exists for the guild."""


class GuildAlreadyExistsError(Exception):
    """A settings row already exists for the guild."""


def _model_to_settings(model: GuildSettingsModel) -> GuildSettings:
    return GuildSettings(
        guild_id=model.guild_id,
        prefix=model.prefix,
        notion_token=model.notion_token,
        notion_database_id=model.notion_database_id,
    )


class GuildSettingsRepository:
    """Async CRUD operations for per-guild settings.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        default_prefix: Prefix for newly created guilds. Defaults to
            settings.DEFAULT_PREFIX.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
        default_prefix: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._default_prefix = default_prefix or get_settings().DEFAULT_PREFIX

    async def _get_model(self, session: AsyncSession, guild_id: str) -> GuildSettingsModel | None:
        stmt = select(GuildSettingsModel).where(GuildSettingsModel.guild_id == guild_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, guild_id: str) -> GuildSettings | None:
        """Get a guild's settings.

        Returns:
            GuildSettings if found, None otherwise.
        """
        async for session in self._session_factory():
            model = await self._get_model(session, guild_id)
            return _model_to_settings(model) if model is not None else None
        return None

    async def create(self, guild_id: str, prefix: str | None = None) -> GuildSettings:
        """Create settings for a guild with no Notion credentials.

        Raises:
            GuildAlreadyExistsError: The guild already has settings.
        """
        async for session in self._session_factory():
            if await self._get_model(session, guild_id) is not None:
                raise GuildAlreadyExistsError(f"Guild {guild_id} already exists")

            model = GuildSettingsModel(
                guild_id=guild_id,
                prefix=prefix or self._default_prefix,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise GuildAlreadyExistsError(f"Guild {guild_id} already exists") from exc
            await session.refresh(model)
            logger.info("guild.created", guild_id=guild_id, prefix=model.prefix)
            return _model_to_settings(model)
        raise RuntimeError("session_factory yielded no session")

    async def get_or_create(self, guild_id: str) -> GuildSettings:
        settings = await self.get(guild_id)
        if settings is not None:
            return settings
        try:
            return await self.create(guild_id)
        except GuildAlreadyExistsError:
            # Lost a race with another handler creating the same guild
            settings = await self.get(guild_id)
            if settings is None:
                raise
            return settings

    async def update(self, guild_id: str, data: GuildSettingsUpdate) -> GuildSettings:
        """Apply a partial update.

        Raises:
            GuildNotFoundError: The guild has no settings.
        """
        changes = data.model_dump(exclude_unset=True)
        if changes.get("prefix", "") is None:
            changes.pop("prefix")

        async for session in self._session_factory():
            model = await self._get_model(session, guild_id)
            if model is None:
                raise GuildNotFoundError(f"Guild {guild_id} doesn't exist")

            for field_name, value in changes.items():
                setattr(model, field_name, value)
            await session.commit()
            await session.refresh(model)
            logger.info("guild.updated", guild_id=guild_id, fields=sorted(changes))
            return _model_to_settings(model)
        raise RuntimeError("session_factory yielded no session")

    async def delete(self, guild_id: str) -> None:
        """Delete a guild's settings.

        Raises:
            GuildNotFoundError: The guild has no settings.
        """
        async for session in self._session_factory():
            model = await self._get_model(session, guild_id)
            if model is None:
                raise GuildNotFoundError(f"Guild {guild_id} doesn't exist")
            await session.delete(model)
            await session.commit()
            logger.info("guild.deleted", guild_id=guild_id)
