"""FastAPI application factory and process entry point.

The HTTP app owns the process lifecycle: its lifespan configures logging,
initializes the settings database, and runs the Discord bot as a background
task on the same event loop. /health and /metrics are served alongside.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.meetbot.api.health import router as health_router
from src.meetbot.bot.client import MeetBot
from src.meetbot.config import get_settings
from src.meetbot.core.database import close_db, get_session, init_db
from src.meetbot.core.logs import configure_structlog
from src.meetbot.core.monitoring import get_metrics_response, init_sentry
from src.meetbot.guilds.repository import GuildSettingsRepository
from src.meetbot.meetings.registry import MeetingRegistry

log = structlog.get_logger(__name__)


def _log_bot_exit(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("bot.crashed", exc_info=exc)
    else:
        log.info("bot.stopped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the database and the Discord bot; tear both down on shutdown."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    await init_db()

    registry = MeetingRegistry()
    guild_settings = GuildSettingsRepository(session_factory=get_session)
    app.state.registry = registry
    app.state.bot = None

    bot_task: asyncio.Task[None] | None = None
    if settings.DISCORD_TOKEN:
        bot = MeetBot(registry=registry, guild_settings=guild_settings, settings=settings)
        app.state.bot = bot
        bot_task = asyncio.create_task(bot.start(settings.DISCORD_TOKEN), name="discord-bot")
        bot_task.add_done_callback(_log_bot_exit)
        log.info("bot.starting")
    else:
        log.error("bot.missing_token", hint="Set DISCORD_TOKEN in the environment or .env")

    try:
        yield
    finally:
        if app.state.bot is not None:
            await app.state.bot.close()
        if bot_task is not None and not bot_task.done():
            bot_task.cancel()
        await registry.close_all()
        await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Meetbot",
        version="0.1.0",
        description="Discord voice meeting attendance tracked in Notion",
        lifespan=lifespan,
    )

    app.include_router(health_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


def run() -> None:
    """Console entry point: serve the app (and with it the bot) via uvicorn."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
