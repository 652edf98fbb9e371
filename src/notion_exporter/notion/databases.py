# ABOUTME: Database fetching and property flattening for Notion export.
# ABOUTME: Retrieves schema and all items, and detects whether an ID is a database.

import logging
from dataclasses import dataclass, field
from typing import Any

from ..errors import NotFoundError, NotionValidationError
from .client import NotionClient
from .pages import plain_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Database:
    """Database schema and descriptive fields."""
    id: str
    title: str
    description: str = ""
    created_time: str = ""
    last_edited_time: str = ""
    # property key -> {"type": ..., "name": ...}
    properties: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_response(cls, database: dict) -> "Database":
        properties = {
            key: {"type": prop.get("type", "unknown"), "name": prop.get("name", key)}
            for key, prop in (database.get("properties") or {}).items()
        }
        return cls(
            id=database.get("id", ""),
            title=plain_text(database.get("title")) or "Untitled Database",
            description=plain_text(database.get("description")),
            created_time=database.get("created_time", ""),
            last_edited_time=database.get("last_edited_time", ""),
            properties=properties,
        )

    @property
    def title_property(self) -> str | None:
        """Key of the property of type 'title', if any."""
        for key, prop in self.properties.items():
            if prop["type"] == "title":
                return key
        return None


@dataclass(frozen=True)
class DatabaseContent:
    """A child database's schema and flattened items, for inline rendering."""
    title: str
    properties: dict[str, dict[str, str]]
    items: list[dict[str, Any]]
    title_property: str | None = None


_SUPPORTED_PROPERTY_TYPES = {
    "title", "rich_text", "number", "select", "multi_select", "date",
    "checkbox", "url", "email", "phone_number", "status",
}


def extract_property_value(prop: dict, join_lists: bool = False) -> Any:
    """Extract a simple value from a Notion property.

    Args:
        prop: A property value object from a page.
        join_lists: Render multi-valued properties as one comma separated string.
    """
    if not prop:
        return None
    prop_type = prop.get("type")

    if prop_type == "title":
        return plain_text(prop.get("title"))
    if prop_type == "rich_text":
        return plain_text(prop.get("rich_text"))
    if prop_type == "number":
        return prop.get("number")
    if prop_type == "select":
        select = prop.get("select")
        return select.get("name") if select else None
    if prop_type == "multi_select":
        names = [s.get("name") for s in prop.get("multi_select", [])]
        return ", ".join(names) if join_lists else names
    if prop_type == "date":
        date = prop.get("date")
        if date:
            return date.get("start")
        return None
    if prop_type == "checkbox":
        return prop.get("checkbox")
    if prop_type == "url":
        return prop.get("url")
    if prop_type == "email":
        return prop.get("email")
    if prop_type == "phone_number":
        return prop.get("phone_number")
    if prop_type == "status":
        status = prop.get("status")
        return status.get("name") if status else None

    return None


def flatten_properties(properties: dict, join_lists: bool = False) -> dict[str, Any]:
    """Flatten every supported property of a page into plain values."""
    return {
        key: extract_property_value(prop, join_lists=join_lists)
        for key, prop in (properties or {}).items()
        if prop and prop.get("type") in _SUPPORTED_PROPERTY_TYPES
    }


async def fetch_database(client: NotionClient, database_id: str) -> Database:
    """Fetch a database's schema."""
    logger.debug(f"Fetching database {database_id}")
    return Database.from_response(await client.get_database(database_id))


async def fetch_database_content(client: NotionClient, database_id: str) -> DatabaseContent:
    """Fetch a database with its schema and all items, flattened for a table.

    Args:
        client: The Notion API client.
        database_id: The ID of the database to fetch.

    Returns:
        DatabaseContent with one dict per item (id, url and property values).
    """
    database = await fetch_database(client, database_id)
    rows = await client.query_database(database_id)

    items = []
    for row in rows:
        item = {"id": row.get("id", ""), "url": row.get("url", "")}
        item.update(flatten_properties(row.get("properties"), join_lists=True))
        items.append(item)

    logger.debug(f"Database {database_id} has {len(items)} items")

    return DatabaseContent(
        title=database.title,
        properties=database.properties,
        items=items,
        title_property=database.title_property,
    )


async def is_database(client: NotionClient, resource_id: str) -> bool:
    """Return True when resource_id resolves to a database.

    A not-found or validation answer means the ID is a page (or nothing the
    database endpoint knows); any other error propagates.
    """
    try:
        await client.get_database(resource_id)
    except (NotFoundError, NotionValidationError):
        return False
    return True


def format_property_value(value: Any) -> str:
    """Render a flattened property value as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)
