# ABOUTME: Block tree model and retrieval for Notion pages.
# ABOUTME: Fetches nested children in concurrent batches and builds an immutable tree.

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping

from ..concurrency import gather_in_batches
from .client import NotionClient
from .databases import DatabaseContent

# Nested children are fetched this many at a time
CHILD_FETCH_BATCH_SIZE = 5


class BlockType(str, Enum):
    """Block types the Markdown converter knows how to render."""
    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    TO_DO = "to_do"
    TOGGLE = "toggle"
    CODE = "code"
    QUOTE = "quote"
    CALLOUT = "callout"
    DIVIDER = "divider"
    IMAGE = "image"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_OF_CONTENTS = "table_of_contents"
    LINK_PREVIEW = "link_preview"
    BOOKMARK = "bookmark"
    EMBED = "embed"
    EQUATION = "equation"
    COLUMN_LIST = "column_list"
    COLUMN = "column"
    SYNCED_BLOCK = "synced_block"
    CHILD_PAGE = "child_page"
    CHILD_DATABASE = "child_database"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_tag(cls, tag: str | None) -> "BlockType":
        """Map a Notion type tag onto a BlockType, UNSUPPORTED when unknown."""
        try:
            return cls(tag)
        except ValueError:
            return cls.UNSUPPORTED


HEADING_TYPES = {BlockType.HEADING_1: 1, BlockType.HEADING_2: 2, BlockType.HEADING_3: 3}

LIST_TYPES = {BlockType.BULLETED_LIST_ITEM, BlockType.NUMBERED_LIST_ITEM, BlockType.TO_DO}


@dataclass(frozen=True)
class Block:
    """One node of a page's content tree.

    `data` is the type-specific payload exactly as Notion returned it.
    `children` is empty unless the block has children and they were fetched.
    """
    id: str
    type: BlockType
    raw_type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    has_children: bool = False
    children: tuple["Block", ...] = ()
    database_content: DatabaseContent | None = None

    @classmethod
    def from_response(cls, raw: Mapping[str, Any], children: Iterable["Block"] = ()) -> "Block":
        """Build a Block from a Notion block object and its already-built children."""
        raw_type = raw.get("type") or "unknown"
        return cls(
            id=raw.get("id", ""),
            type=BlockType.from_tag(raw_type),
            raw_type=raw_type,
            data=raw.get(raw_type) or {},
            has_children=bool(raw.get("has_children", False)),
            children=tuple(children),
        )

    @property
    def rich_text(self) -> list[dict]:
        return self.data.get("rich_text") or []


@dataclass(frozen=True)
class ChildRef:
    """A child page or child database discovered in a block sequence."""
    id: str
    title: str


async def fetch_block_tree(
    client: NotionClient,
    block_id: str,
    batch_size: int = CHILD_FETCH_BATCH_SIZE,
    logger: logging.Logger | None = None,
) -> tuple[Block, ...]:
    """Fetch all blocks under a parent, recursively fetching children.

    Children of sibling blocks are fetched `batch_size` at a time. A
    failure while fetching one block's children is logged and that block
    keeps an empty children tuple; a failure listing `block_id` itself
    propagates.

    Args:
        client: The Notion API client.
        block_id: The ID of the parent block or page.
        batch_size: Number of sibling subtrees fetched concurrently.
        logger: Logger for diagnostics.

    Returns:
        Tuple of blocks in API order, each carrying its children.
    """
    log = logger or logging.getLogger(__name__)
    raw_blocks = await client.get_blocks(block_id)
    parents = [raw for raw in raw_blocks if raw.get("has_children")]

    async def fetch_children(raw: dict) -> tuple[Block, ...]:
        try:
            return await fetch_block_tree(client, raw["id"], batch_size, logger)
        except Exception as e:
            log.warning(f"Failed to fetch children of {raw.get('type')} block {raw.get('id')}: {e}")
            return ()

    # Batches hold only the blocks whose children must be fetched.
    fetched = iter(await gather_in_batches(parents, fetch_children, batch_size))
    return tuple(
        Block.from_response(raw, next(fetched) if raw.get("has_children") else ())
        for raw in raw_blocks
    )


def extract_child_pages(blocks: Iterable[Block]) -> list[ChildRef]:
    """List child_page blocks of a block sequence (top level only)."""
    return [
        ChildRef(id=block.id, title=block.data.get("title") or "Untitled")
        for block in blocks
        if block.type is BlockType.CHILD_PAGE
    ]


def extract_child_databases(blocks: Iterable[Block]) -> list[ChildRef]:
    """List child_database blocks of a block sequence (top level only)."""
    return [
        ChildRef(id=block.id, title=block.data.get("title") or "Untitled Database")
        for block in blocks
        if block.type is BlockType.CHILD_DATABASE
    ]


def iter_blocks(blocks: Iterable[Block]) -> Iterator[Block]:
    """Yield blocks depth-first, including nested children.

    Children of child_page and child_database blocks belong to those
    resources and are not visited.
    """
    for block in blocks:
        yield block
        if block.type not in (BlockType.CHILD_PAGE, BlockType.CHILD_DATABASE):
            yield from iter_blocks(block.children)
