"""Typed Notion property values and database schema.

Defines:
- PropertyValue: tagged union of the property kinds the bot writes
  (checkbox, title, rich_text)
- DatabaseSchema: property names and types fetched from a database
- NotionPage: the subset of a page representation the bot relies on
- to_notion_properties(): Converts PageProperties to the API `properties` format
- validate_properties(): Checks PageProperties against a DatabaseSchema
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.meetbot.notion.errors import SchemaValidationError

DEFAULT_TITLE_PROPERTY = "Name"


# ── Property Values ──────────────────────────────────────────────────────────


class CheckboxValue(BaseModel):
    """Checkbox property; used for per-member attendance."""

    model_config = ConfigDict(frozen=True)

    type: Literal["checkbox"] = "checkbox"
    value: bool


class TitleValue(BaseModel):
    """Title property; every database has exactly one."""

    model_config = ConfigDict(frozen=True)

    type: Literal["title"] = "title"
    value: str


class RichTextValue(BaseModel):
    """Plain text property."""

    model_config = ConfigDict(frozen=True)

    type: Literal["rich_text"] = "rich_text"
    value: str


PropertyValue = Annotated[
    Union[CheckboxValue, TitleValue, RichTextValue],
    Field(discriminator="type"),
]

PageProperties = dict[str, PropertyValue]


# ── Schema & Page ────────────────────────────────────────────────────────────


class DatabaseSchema(BaseModel):
    """Property names and types of a Notion database."""

    database_id: str
    properties: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_notion(cls, database: dict[str, Any]) -> DatabaseSchema:
        """Build from a `databases.retrieve` response."""
        properties = {
            name: prop.get("type", "")
            for name, prop in (database.get("properties") or {}).items()
        }
        return cls(database_id=database.get("id", ""), properties=properties)

    @property
    def title_property(self) -> str:
        """Name of the database's title property."""
        for name, prop_type in self.properties.items():
            if prop_type == "title":
                return name
        return DEFAULT_TITLE_PROPERTY

    def has(self, name: str) -> bool:
        return name in self.properties

    def type_of(self, name: str) -> str | None:
        return self.properties.get(name)


class NotionPage(BaseModel):
    """A page as returned by pages.create / pages.update."""

    model_config = ConfigDict(extra="allow")

    id: str
    url: str | None = None
    archived: bool = False
    properties: dict[str, Any] = Field(default_factory=dict)

    def has_property(self, name: str) -> bool:
        return name in self.properties


# ── Conversion & Validation ──────────────────────────────────────────────────


def _rich_text(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def to_notion_properties(properties: PageProperties) -> dict[str, Any]:
    """Convert typed values to the Notion API `properties` payload.

    Args:
        properties: Mapping of property name to typed value.

    Returns:
        Dict suitable for the `properties` parameter of pages.create/update.
    """
    payload: dict[str, Any] = {}
    for name, prop in properties.items():
        if isinstance(prop, CheckboxValue):
            payload[name] = {"checkbox": prop.value}
        elif isinstance(prop, TitleValue):
            payload[name] = {"title": _rich_text(prop.value)}
        elif isinstance(prop, RichTextValue):
            payload[name] = {"rich_text": _rich_text(prop.value)}
    return payload


def validate_properties(properties: PageProperties, schema: DatabaseSchema) -> None:
    """Ensure every property exists in the schema with a matching type.

    Raises:
        SchemaValidationError: Naming the first offending property.
    """
    for name, prop in properties.items():
        expected = schema.type_of(name)
        if expected is None:
            raise SchemaValidationError(
                f"Property {name!r} does not exist in database {schema.database_id}"
            )
        if expected != prop.type:
            raise SchemaValidationError(
                f"Property {name!r} is {expected}, not {prop.type}"
            )
