# ABOUTME: Notion API integration package.
# ABOUTME: Exports the client, block tree retrieval, and page/database fetching.

from .client import NotionClient
from .blocks import (
    Block,
    BlockType,
    ChildRef,
    extract_child_databases,
    extract_child_pages,
    fetch_block_tree,
    iter_blocks,
)
from .pages import Page, fetch_page, get_page_title
from .databases import (
    Database,
    DatabaseContent,
    fetch_database,
    fetch_database_content,
    flatten_properties,
    format_property_value,
    is_database,
)

__all__ = [
    "NotionClient",
    "Block",
    "BlockType",
    "ChildRef",
    "extract_child_databases",
    "extract_child_pages",
    "fetch_block_tree",
    "iter_blocks",
    "Page",
    "fetch_page",
    "get_page_title",
    "Database",
    "DatabaseContent",
    "fetch_database",
    "fetch_database_content",
    "flatten_properties",
    "format_property_value",
    "is_database",
]
