"""Guild settings persistence model.

One row per Discord guild holding its command prefix and the Notion
credentials meetings are created with.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.meetbot.core.database import Base


class GuildSettingsModel(Base):
    """Per-guild bot configuration."""

    __tablename__ = "guild_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    guild_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    prefix: Mapped[str] = mapped_column(String(8), nullable=False)
    notion_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notion_database_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
