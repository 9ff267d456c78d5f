"""Notion error taxonomy.

notion-client and httpx exceptions are translated into these at the
NotionPageClient boundary so callers only ever handle NotionError.
"""

from __future__ import annotations


class NotionError(Exception):
    """Any failed Notion API interaction."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class PageNotFoundError(NotionError):
    """The page (or database) no longer exists or is not shared with the integration."""


class NotionTimeoutError(NotionError):
    """The request did not complete within NOTION_TIMEOUT_MS."""


class SchemaValidationError(NotionError):
    """A property set does not match the target database schema."""
