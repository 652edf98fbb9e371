# ABOUTME: Page model and retrieval for Notion export.
# ABOUTME: Projects a Notion page object onto the fields the exporter uses.

import logging
from dataclasses import dataclass, field
from typing import Any

from .client import NotionClient

logger = logging.getLogger(__name__)


def plain_text(rich_text: list[dict] | None) -> str:
    """Concatenate the plain text of a rich_text array."""
    return "".join(segment.get("plain_text", "") for segment in rich_text or [])


def get_page_title(page: dict) -> str:
    """Extract title from the page property of type 'title'."""
    for prop in (page.get("properties") or {}).values():
        if prop and prop.get("type") == "title":
            return plain_text(prop.get("title")) or "Untitled"
    return "Untitled"


@dataclass(frozen=True)
class Page:
    """A Notion page (or database item)."""
    id: str
    title: str
    created_time: str = ""
    last_edited_time: str = ""
    url: str = ""
    public_url: str | None = None
    archived: bool = False
    in_trash: bool = False
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, page: dict) -> "Page":
        return cls(
            id=page.get("id", ""),
            title=get_page_title(page),
            created_time=page.get("created_time", ""),
            last_edited_time=page.get("last_edited_time", ""),
            url=page.get("url", ""),
            public_url=page.get("public_url"),
            archived=bool(page.get("archived", False)),
            in_trash=bool(page.get("in_trash", False)),
            properties=page.get("properties") or {},
        )


async def fetch_page(client: NotionClient, page_id: str) -> Page:
    """Fetch a page's properties (not its blocks).

    Args:
        client: The Notion API client.
        page_id: The ID of the page to fetch.

    Returns:
        The projected Page.
    """
    logger.debug(f"Fetching page {page_id}")
    return Page.from_response(await client.get_page(page_id))
