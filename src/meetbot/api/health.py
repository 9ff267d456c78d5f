"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). The HTTP server
also keeps hosted deployments awake while the bot runs.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.meetbot.config import get_settings
from src.meetbot.core.database import get_engine

router = APIRouter(tags=["health"])


def _bot_connected(request: Request) -> bool:
    bot = getattr(request.app.state, "bot", None)
    return bot is not None and bot.is_ready() and not bot.is_closed()


@router.get("/health")
async def health_check(request: Request):
    """Basic liveness check: the process is up; reports bot and meeting state."""
    settings = get_settings()
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "discord_connected": _bot_connected(request),
        "active_meetings": len(registry) if registry is not None else 0,
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: database reachable and Discord gateway connected.

    Returns 200 if both pass, 503 otherwise.
    """
    checks: dict = {"database": "ok", "discord": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    if not _bot_connected(request):
        checks["discord"] = "disconnected"

    all_healthy = checks["database"] == "ok" and checks["discord"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
