"""Data contracts for meeting tracking.

Defines the meeting lifecycle enums, the per-guild Notion credentials a
meeting is bound to, and the options the command layer passes when it
starts tracking a voice channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    import discord


# ── Enums ────────────────────────────────────────────────────────────────────


class MeetingState(str, Enum):
    """ACTIVE while a voice channel is tracked; DEAD is terminal."""

    ACTIVE = "active"
    DEAD = "dead"


class EndReason(str, Enum):
    """Why a meeting stopped being tracked."""

    EMPTY_CHANNEL = "empty_channel"
    PAGE_DELETED = "page_deleted"
    MANUAL = "manual"


# ── Credentials & Options ────────────────────────────────────────────────────


class NotionCredentials(BaseModel):
    """Notion integration token and target database for one guild."""

    model_config = ConfigDict(frozen=True)

    token: str
    database_id: str


@dataclass(frozen=True)
class MeetingOptions:
    """Everything needed to start tracking a voice channel."""

    credentials: NotionCredentials
    voice_channel: discord.VoiceChannel
    notification_channel: discord.abc.Messageable
