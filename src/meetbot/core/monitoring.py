"""Prometheus metrics and Sentry integration.

Provides:
- Meeting lifecycle gauges/counters updated by MeetingRegistry
- notion_requests_total counter updated by NotionPageClient
- init_sentry(): Initialize Sentry when a DSN is configured
- get_metrics_response(): Prometheus exposition for the /metrics route
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    generate_latest,
)
from starlette.responses import Response

# ── Meeting Metrics ──────────────────────────────────────────────────────────

meetings_active = Gauge(
    "meetings_active",
    "Number of voice channels currently being tracked",
)

meetings_started_total = Counter(
    "meetings_started_total",
    "Total meetings started",
)

meetings_ended_total = Counter(
    "meetings_ended_total",
    "Total meetings ended",
    ["reason"],
)

# ── Notion Metrics ───────────────────────────────────────────────────────────

notion_requests_total = Counter(
    "notion_requests_total",
    "Total Notion API requests",
    ["operation", "status"],
)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
