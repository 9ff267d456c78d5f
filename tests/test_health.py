"""Tests for /health, /health/ready and /metrics.

The lifespan is not run: app.state is populated by hand and the database
engine is replaced so no server is contacted.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from src.meetbot.main import create_app
from src.meetbot.meetings.registry import MeetingRegistry


def _failing_engine():
    raise ConnectionError("database unavailable")


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch, notion: MagicMock):
    monkeypatch.setattr("src.meetbot.api.health.get_engine", _failing_engine)
    app = create_app()
    app.state.registry = MeetingRegistry(notion_factory=lambda token: notion)
    app.state.bot = None
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_health_reports_state(client: httpx.AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["discord_connected"] is False
    assert body["active_meetings"] == 0


async def test_health_reports_connected_bot(app, client: httpx.AsyncClient):
    bot = MagicMock()
    bot.is_ready.return_value = True
    bot.is_closed.return_value = False
    app.state.bot = bot

    response = await client.get("/health")

    assert response.json()["discord_connected"] is True


async def test_ready_is_degraded_without_database_or_bot(client: httpx.AsyncClient):
    response = await client.get("/health/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["database"] == "error"
    assert body["checks"]["discord"] == "disconnected"


async def test_metrics_exposes_meeting_counters(client: httpx.AsyncClient):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "meetings_active" in response.text
