"""Shared builders and fixtures for the notion-exporter test suite."""

from __future__ import annotations

import httpx
import pytest
from notion_client.errors import APIResponseError

from notion_exporter.errors import NotFoundError
from notion_exporter.notion import Block


def rich(text: str, href: str | None = None, **annotations: bool) -> dict:
    """One rich_text segment."""
    return {
        "type": "text",
        "plain_text": text,
        "href": href,
        "annotations": {
            "bold": False,
            "italic": False,
            "strikethrough": False,
            "underline": False,
            "code": False,
            "color": "default",
            **annotations,
        },
    }


def raw_block(
    block_type: str,
    block_id: str = "blk-1",
    has_children: bool = False,
    text: str | None = None,
    **payload,
) -> dict:
    """A block object as the Notion API returns it."""
    if text is not None:
        payload.setdefault("rich_text", [rich(text)])
    return {
        "object": "block",
        "id": block_id,
        "type": block_type,
        "has_children": has_children,
        block_type: payload,
    }


def make_block(block_type: str, block_id: str = "blk-1", children=(), text: str | None = None, **payload) -> Block:
    """A Block with already attached children."""
    raw = raw_block(block_type, block_id, bool(children), text, **payload)
    return Block.from_response(raw, children)


def page_response(
    page_id: str = "page-1",
    title: str = "Test Page",
    last_edited_time: str = "2024-01-02T10:00:00.000Z",
    properties: dict | None = None,
) -> dict:
    """A page object as the Notion API returns it."""
    if properties is None:
        properties = {"Name": {"id": "title", "type": "title", "title": [rich(title)]}}
    return {
        "object": "page",
        "id": page_id,
        "created_time": "2024-01-01T09:00:00.000Z",
        "last_edited_time": last_edited_time,
        "url": f"https://www.notion.so/{page_id.replace('-', '')}",
        "public_url": None,
        "archived": False,
        "in_trash": False,
        "properties": properties,
    }


def database_response(
    database_id: str = "db-1",
    title: str = "Tasks",
    properties: dict | None = None,
) -> dict:
    """A database object as the Notion API returns it."""
    if properties is None:
        properties = {
            "Name": {"id": "title", "name": "Name", "type": "title"},
            "Status": {"id": "st", "name": "Status", "type": "select"},
        }
    return {
        "object": "database",
        "id": database_id,
        "title": [rich(title)],
        "description": [],
        "created_time": "2024-01-01T09:00:00.000Z",
        "last_edited_time": "2024-01-03T09:00:00.000Z",
        "properties": properties,
    }


def item_response(
    item_id: str,
    name: str,
    status: str | None = "Done",
    last_edited_time: str = "2024-01-02T10:00:00.000Z",
) -> dict:
    """A database item (page) with Name and Status properties."""
    return page_response(
        item_id,
        last_edited_time=last_edited_time,
        properties={
            "Name": {"id": "title", "type": "title", "title": [rich(name)]},
            "Status": {
                "id": "st",
                "type": "select",
                "select": {"name": status} if status else None,
            },
        },
    )


def make_api_error(status: int, code: str, message: str = "error", headers: dict | None = None) -> APIResponseError:
    """An APIResponseError as raised by notion-client."""
    response = httpx.Response(status, headers=headers or {}, text=message)
    return APIResponseError(response, message, code)


class FakeNotionClient:
    """In-memory stand-in for NotionClient.

    Unknown IDs raise NotFoundError like the real client. Calls are counted
    per method so tests can assert what was fetched.
    """

    def __init__(self):
        self.pages: dict[str, dict] = {}
        self.blocks: dict[str, list[dict]] = {}
        self.databases: dict[str, dict] = {}
        self.rows: dict[str, list[dict]] = {}
        self.failing_blocks: set[str] = set()
        self.calls: dict[str, list] = {"get_page": [], "get_blocks": [], "get_database": [], "query_database": []}
        self.closed = False

    async def get_page(self, page_id: str) -> dict:
        self.calls["get_page"].append(page_id)
        if page_id not in self.pages:
            raise NotFoundError(f"Could not find page with ID: {page_id}", code="object_not_found", status=404)
        return self.pages[page_id]

    async def get_blocks(self, block_id: str) -> list[dict]:
        self.calls["get_blocks"].append(block_id)
        if block_id in self.failing_blocks:
            raise NotFoundError(f"Could not find block with ID: {block_id}", code="object_not_found", status=404)
        return self.blocks.get(block_id, [])

    async def get_database(self, database_id: str) -> dict:
        self.calls["get_database"].append(database_id)
        if database_id not in self.databases:
            raise NotFoundError(f"Could not find database with ID: {database_id}", code="object_not_found", status=404)
        return self.databases[database_id]

    async def query_database(self, database_id: str, query: dict | None = None) -> list[dict]:
        self.calls["query_database"].append((database_id, query))
        return self.rows.get(database_id, [])

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeNotionClient:
    return FakeNotionClient()
