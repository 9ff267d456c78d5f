"""Shared fixtures: a mocked Notion client and an in-memory settings store."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tests.fakes import InMemoryGuildSettingsRepository, make_notion_mock


@pytest.fixture
def notion() -> MagicMock:
    return make_notion_mock()


@pytest.fixture
def guild_repo() -> InMemoryGuildSettingsRepository:
    return InMemoryGuildSettingsRepository()
