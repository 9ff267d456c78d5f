"""Notion page client -- the three API calls meeting tracking needs.

Wraps the notion-client AsyncClient with:
- fetch_schema(): GET /databases/{id}
- create_page(): POST /pages under a database parent
- patch_page(): PATCH /pages/{id}

Key implementation details:
- One client per guild token; the Notion-Version header is pinned from settings
- Single attempt per call, bounded by NOTION_TIMEOUT_MS
- notion-client / httpx exceptions are translated to the NotionError taxonomy
- Every call is counted in notion_requests_total by outcome
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from notion_client import APIErrorCode, APIResponseError, AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from src.meetbot.config import Settings, get_settings
from src.meetbot.core.monitoring import notion_requests_total
from src.meetbot.notion.errors import NotionError, NotionTimeoutError, PageNotFoundError
from src.meetbot.notion.properties import (
    DatabaseSchema,
    NotionPage,
    PageProperties,
    to_notion_properties,
)

logger = structlog.get_logger(__name__)


def _translate(operation: str, exc: Exception) -> NotionError:
    """Map a notion-client or transport exception onto NotionError."""
    if isinstance(exc, RequestTimeoutError):
        return NotionTimeoutError(f"{operation} timed out")
    if isinstance(exc, APIResponseError):
        code = exc.code.value if isinstance(exc.code, APIErrorCode) else str(exc.code)
        if code == APIErrorCode.ObjectNotFound.value or exc.status == 404:
            return PageNotFoundError(str(exc), status=exc.status, code=code)
        return NotionError(str(exc), status=exc.status, code=code)
    if isinstance(exc, HTTPResponseError):
        if exc.status == 404:
            return PageNotFoundError(str(exc), status=404)
        return NotionError(str(exc), status=exc.status)
    if isinstance(exc, httpx.TimeoutException):
        return NotionTimeoutError(f"{operation} timed out")
    return NotionError(f"{operation} failed: {exc}")


def _outcome(error: NotionError) -> str:
    if isinstance(error, PageNotFoundError):
        return "not_found"
    if isinstance(error, NotionTimeoutError):
        return "timeout"
    return "error"


class NotionPageClient:
    """Notion API wrapper scoped to one integration token.

    Args:
        token: Notion integration token (internal integration secret).
        notion_version: Value of the Notion-Version header.
        timeout_ms: Per-request timeout in milliseconds.
        client: Pre-built AsyncClient (tests inject a mock here).
    """

    def __init__(
        self,
        token: str,
        *,
        notion_version: str = "2022-06-28",
        timeout_ms: int = 10_000,
        client: AsyncClient | None = None,
    ) -> None:
        self._client = client or AsyncClient(
            auth=token,
            notion_version=notion_version,
            timeout_ms=timeout_ms,
        )

    @classmethod
    def from_settings(cls, token: str, settings: Settings | None = None) -> NotionPageClient:
        settings = settings or get_settings()
        return cls(
            token,
            notion_version=settings.NOTION_API_VERSION,
            timeout_ms=settings.NOTION_TIMEOUT_MS,
        )

    async def _request(
        self, operation: str, call: Callable[..., Awaitable[Any]], **kwargs: Any
    ) -> dict[str, Any]:
        try:
            response = await call(**kwargs)
        except (HTTPResponseError, RequestTimeoutError, httpx.HTTPError) as exc:
            error = _translate(operation, exc)
            notion_requests_total.labels(operation=operation, status=_outcome(error)).inc()
            raise error from exc
        notion_requests_total.labels(operation=operation, status="ok").inc()
        return response

    async def fetch_schema(self, database_id: str) -> DatabaseSchema:
        """Retrieve a database and return its property names and types."""
        database = await self._request(
            "fetch_schema",
            self._client.databases.retrieve,
            database_id=database_id,
        )
        schema = DatabaseSchema.from_notion(database)
        if not schema.database_id:
            schema.database_id = database_id
        return schema

    async def create_page(self, database_id: str, properties: PageProperties) -> NotionPage:
        """Create a page in a database.

        Returns:
            The created page, including its id.
        """
        page = await self._request(
            "create_page",
            self._client.pages.create,
            parent={"database_id": database_id},
            properties=to_notion_properties(properties),
        )
        logger.info("notion.page_created", page_id=page.get("id"), database_id=database_id)
        return NotionPage.model_validate(page)

    async def patch_page(self, page_id: str, properties: PageProperties) -> NotionPage:
        """Update properties on an existing page.

        Raises:
            PageNotFoundError: The page was deleted or unshared.
        """
        page = await self._request(
            "patch_page",
            self._client.pages.update,
            page_id=page_id,
            properties=to_notion_properties(properties),
        )
        logger.info("notion.page_updated", page_id=page_id, properties=list(properties))
        return NotionPage.model_validate(page)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
