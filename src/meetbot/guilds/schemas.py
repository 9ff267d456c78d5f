"""Pydantic v2 schemas for guild settings."""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.meetbot.meetings.schemas import NotionCredentials

VALID_PREFIXES = ".,!?/<>;~"


class GuildSettings(BaseModel):
    """Stored configuration for one guild."""

    guild_id: str
    prefix: str
    notion_token: str | None = None
    notion_database_id: str | None = None

    def notion_credentials(self) -> NotionCredentials | None:
        """Credentials for starting a meeting, or None if either is missing."""
        if not self.notion_token or not self.notion_database_id:
            return None
        return NotionCredentials(
            token=self.notion_token,
            database_id=self.notion_database_id,
        )


class GuildSettingsUpdate(BaseModel):
    """Partial update.

    Fields left unset are untouched; fields explicitly set to None are cleared.
    The prefix cannot be cleared.
    """

    prefix: str | None = Field(None, min_length=1, max_length=1)
    notion_token: str | None = None
    notion_database_id: str | None = None


def is_valid_prefix(prefix: str) -> bool:
    return len(prefix) == 1 and prefix in VALID_PREFIXES
