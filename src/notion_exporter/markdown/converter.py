# ABOUTME: Converts a Notion block tree to Markdown.
# ABOUTME: Tracks list state, renders nested children and synthesizes tables of contents.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from ..notion.blocks import HEADING_TYPES, LIST_TYPES, Block, BlockType
from ..notion.databases import DatabaseContent, format_property_value
from ..notion.pages import plain_text
from .images import ImageAssetPipeline
from .rich_text import escape_table_cell, heading_anchor, render_rich_text
from .writer import unique_filenames

NOTION_BASE_URL = "https://www.notion.so"

NO_HEADINGS_COMMENT = "<!-- No headings found for table of contents -->"

DEFAULT_CALLOUT_EMOJI = "💡"


@dataclass(frozen=True)
class _Context:
    """Per-block rendering state handed to renderers."""
    asset_dir: str | Path | None
    # Top-level blocks of the document (for tables of contents)
    root: Sequence[Block]
    # Position in the current numbered list, 0 outside one
    number: int = 0


def notion_url(block_id: str) -> str:
    return f"{NOTION_BASE_URL}/{block_id.replace('-', '')}"


def _indent(text: str, prefix: str) -> str:
    return "\n".join(f"{prefix}{line}" if line else line for line in text.split("\n"))


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" if line else ">" for line in text.split("\n"))


class MarkdownConverter:
    """Converts ordered Notion blocks into Markdown text.

    Renderers are looked up by BlockType; unknown types become an HTML
    comment. Conversion never raises for content reasons.
    """

    def __init__(
        self,
        images: ImageAssetPipeline | None = None,
        local_database_links: bool = True,
        logger: logging.Logger | None = None,
    ):
        """Initialize the converter.

        Args:
            images: Pipeline resolving image blocks.
            local_database_links: Link inline database items to their exported
                files (databases/<id>/<title>.md) instead of Notion.
            logger: Logger for diagnostics.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.local_database_links = local_database_links
        self.images = images or ImageAssetPipeline(logger=self.logger)
        self._renderers: dict[BlockType, Callable[[Block, _Context], Awaitable[str]]] = {
            BlockType.PARAGRAPH: self._paragraph,
            BlockType.HEADING_1: self._heading,
            BlockType.HEADING_2: self._heading,
            BlockType.HEADING_3: self._heading,
            BlockType.BULLETED_LIST_ITEM: self._bulleted_list_item,
            BlockType.NUMBERED_LIST_ITEM: self._numbered_list_item,
            BlockType.TO_DO: self._to_do,
            BlockType.TOGGLE: self._toggle,
            BlockType.CODE: self._code,
            BlockType.QUOTE: self._quote,
            BlockType.CALLOUT: self._callout,
            BlockType.DIVIDER: self._divider,
            BlockType.IMAGE: self._image,
            BlockType.TABLE: self._table,
            BlockType.TABLE_ROW: self._table_row,
            BlockType.TABLE_OF_CONTENTS: self._table_of_contents,
            BlockType.LINK_PREVIEW: self._link_preview,
            BlockType.BOOKMARK: self._bookmark,
            BlockType.EMBED: self._bookmark,
            BlockType.EQUATION: self._equation,
            BlockType.COLUMN_LIST: self._column_list,
            BlockType.COLUMN: self._column,
            BlockType.SYNCED_BLOCK: self._synced_block,
            BlockType.CHILD_PAGE: self._child_page,
            BlockType.CHILD_DATABASE: self._child_database,
            BlockType.UNSUPPORTED: self._unsupported,
        }

    async def convert(self, blocks: Sequence[Block], asset_dir: str | Path | None = "") -> str:
        """Convert a block sequence to Markdown.

        Args:
            blocks: Blocks in render order (children attached).
            asset_dir: Directory of the output file; images are stored
                beneath it. Empty means keep remote image URLs.

        Returns:
            Markdown text without leading/trailing whitespace.
        """
        return await self._convert(blocks, asset_dir, blocks)

    async def _convert(self, blocks: Sequence[Block], asset_dir: str | Path | None, root: Sequence[Block]) -> str:
        self.logger.debug(f"Converting {len(blocks)} blocks to Markdown")
        markdown = ""
        previous_type = None
        number = 0

        for index, block in enumerate(blocks):
            if block.type is BlockType.NUMBERED_LIST_ITEM:
                number = number + 1 if previous_type is BlockType.NUMBERED_LIST_ITEM else 1
            else:
                number = 0

            context = _Context(asset_dir=asset_dir, root=root, number=number)
            rendered = await self.render_block(block, context)

            # Consecutive list items stay contiguous; everything else gets a blank line.
            next_block = blocks[index + 1] if index + 1 < len(blocks) else None
            if block.type in LIST_TYPES and next_block is not None and next_block.type in LIST_TYPES:
                separator = "\n"
            else:
                separator = "\n\n"

            markdown += rendered + separator
            previous_type = block.type

        return markdown.strip()

    async def render_block(self, block: Block, context: _Context) -> str:
        renderer = self._renderers.get(block.type, self._unsupported)
        return await renderer(block, context)

    async def _children(self, block: Block, context: _Context) -> str:
        if not block.children:
            return ""
        return await self._convert(block.children, context.asset_dir, context.root)

    async def _with_nested(self, line: str, block: Block, context: _Context, prefix: str) -> str:
        nested = await self._children(block, context)
        if not nested:
            return line
        return f"{line}\n{_indent(nested, prefix)}"

    async def _paragraph(self, block: Block, context: _Context) -> str:
        text = render_rich_text(block.rich_text)
        nested = await self._children(block, context)
        # Indenting would turn the children into a code block.
        return f"{text}\n\n{nested}" if nested else text

    async def _heading(self, block: Block, context: _Context) -> str:
        level = HEADING_TYPES[block.type]
        text = render_rich_text(block.rich_text)
        if block.data.get("is_toggleable"):
            return await self._details(f"<h{level}>{text}</h{level}>", block, context)
        return f"{'#' * level} {text}"

    async def _bulleted_list_item(self, block: Block, context: _Context) -> str:
        return await self._with_nested(f"- {render_rich_text(block.rich_text)}", block, context, "  ")

    async def _numbered_list_item(self, block: Block, context: _Context) -> str:
        marker = f"{context.number or 1}. "
        line = f"{marker}{render_rich_text(block.rich_text)}"
        return await self._with_nested(line, block, context, " " * len(marker))

    async def _to_do(self, block: Block, context: _Context) -> str:
        checkbox = "[x]" if block.data.get("checked") else "[ ]"
        line = f"- {checkbox} {render_rich_text(block.rich_text)}"
        return await self._with_nested(line, block, context, "  ")

    async def _details(self, summary: str, block: Block, context: _Context) -> str:
        content = await self._children(block, context)
        if not content:
            return f"<details>\n<summary>{summary}</summary>\n</details>"
        return f"<details>\n<summary>{summary}</summary>\n\n{content}\n\n</details>"

    async def _toggle(self, block: Block, context: _Context) -> str:
        return await self._details(render_rich_text(block.rich_text), block, context)

    async def _code(self, block: Block, context: _Context) -> str:
        language = block.data.get("language") or ""
        if language == "plain text":
            language = ""
        return f"```{language}\n{plain_text(block.rich_text)}\n```"

    async def _quote(self, block: Block, context: _Context) -> str:
        text = render_rich_text(block.rich_text)
        nested = await self._children(block, context)
        if nested:
            text = f"{text}\n\n{nested}"
        return _quote(text)

    async def _callout(self, block: Block, context: _Context) -> str:
        icon = block.data.get("icon") or {}
        emoji = icon.get("emoji") if icon.get("type") == "emoji" else DEFAULT_CALLOUT_EMOJI
        text = f"{emoji} {render_rich_text(block.rich_text)}"
        nested = await self._children(block, context)
        if nested:
            text = f"{text}\n\n{nested}"
        return _quote(text)

    async def _divider(self, block: Block, context: _Context) -> str:
        return "---"

    async def _image(self, block: Block, context: _Context) -> str:
        return await self.images.resolve(block, context.asset_dir)

    def _row(self, row: Block) -> list[str]:
        return [escape_table_cell(render_rich_text(cell)) for cell in row.data.get("cells") or []]

    async def _table(self, block: Block, context: _Context) -> str:
        rows = [child for child in block.children if child.type is BlockType.TABLE_ROW]
        if not rows:
            return "<!-- Empty table -->"

        lines = []
        for index, row in enumerate(rows):
            cells = self._row(row)
            lines.append(f"| {' | '.join(cells)} |")
            if index == 0 and block.data.get("has_column_header"):
                lines.append(f"| {' | '.join('---' for _ in cells)} |")
        return "\n".join(lines)

    async def _table_row(self, block: Block, context: _Context) -> str:
        return f"| {' | '.join(self._row(block))} |"

    async def _table_of_contents(self, block: Block, context: _Context) -> str:
        lines = []
        for heading in context.root:
            level = HEADING_TYPES.get(heading.type)
            if level is None:
                continue
            text = plain_text(heading.rich_text)
            lines.append(f"{'  ' * (level - 1)}- [{text}](#{heading_anchor(text)})")

        if not lines:
            return NO_HEADINGS_COMMENT
        return "\n".join(lines)

    async def _link_preview(self, block: Block, context: _Context) -> str:
        return block.data.get("url", "")

    async def _bookmark(self, block: Block, context: _Context) -> str:
        url = block.data.get("url", "")
        caption = render_rich_text(block.data.get("caption"))
        return f"[{caption or url}]({url})"

    async def _equation(self, block: Block, context: _Context) -> str:
        return f"$$\n{block.data.get('expression', '')}\n$$"

    async def _column_list(self, block: Block, context: _Context) -> str:
        parts = ['<div style="display: flex; gap: 20px;">']
        for column in block.children:
            content = await self._children(column, context)
            parts.append(f'<div style="flex: 1;">\n\n{content}\n\n</div>')
        parts.append("</div>")
        return "\n".join(parts)

    async def _column(self, block: Block, context: _Context) -> str:
        return await self._children(block, context)

    async def _synced_block(self, block: Block, context: _Context) -> str:
        return await self._children(block, context)

    async def _child_page(self, block: Block, context: _Context) -> str:
        title = block.data.get("title") or "Untitled"
        return f"[{title}]({notion_url(block.id)})"

    async def _child_database(self, block: Block, context: _Context) -> str:
        content = block.database_content
        if content is None:
            title = block.data.get("title") or block.id
            return f"[Database: {title}]({notion_url(block.id)})"
        return self._database_table(block.id, content)

    def _database_table(self, database_id: str, content: DatabaseContent) -> str:
        title_key = content.title_property
        keys = [key for key in content.properties if key != title_key]
        if title_key is not None:
            keys.insert(0, title_key)

        header = [escape_table_cell(content.properties[key]["name"]) for key in keys]
        lines = [
            f"### {content.title}",
            "",
            f"| {' | '.join(header)} |",
            f"| {' | '.join('---' for _ in header)} |",
        ]
        filenames = unique_filenames(
            (item.get("id", ""), item.get(title_key) if title_key else None) for item in content.items
        )
        for item, filename in zip(content.items, filenames):
            cells = []
            for key in keys:
                if key == title_key:
                    item_title = item.get(key) or "Untitled"
                    if self.local_database_links:
                        link = f"./databases/{database_id}/{filename}.md"
                    else:
                        link = item.get("url") or notion_url(item.get("id", ""))
                    cells.append(f"[{escape_table_cell(item_title)}]({link})")
                else:
                    cells.append(escape_table_cell(format_property_value(item.get(key))))
            lines.append(f"| {' | '.join(cells)} |")

        if not content.items:
            lines.append("")
            lines.append("<!-- Database has no items -->")
        return "\n".join(lines)

    async def _unsupported(self, block: Block, context: _Context) -> str:
        self.logger.debug(f"Unsupported block type {block.raw_type} ({block.id})")
        return f"<!-- Unsupported block type: {block.raw_type} -->"
