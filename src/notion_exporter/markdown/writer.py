# ABOUTME: Writes exported Markdown files and composes their layout.
# ABOUTME: Handles safe filename generation and traversal-safe path joins.

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

from ..errors import ExportIOError

MAX_FILENAME_LENGTH = 100

_ILLEGAL_CHARS = re.compile(r'[/\\:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")
_EDGE_DOTS_AND_SPACES = re.compile(r"^[.\s]+|[.\s]+$")
_UNDERSCORE_RUNS = re.compile(r"_+")
_PARENT_PREFIX = re.compile(r"^(?:\.\.[/\\])+")


def sanitize_filename(name: str | None, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Convert a page title to a stable, safe filename (without extension).

    Args:
        name: The original name.
        max_length: Maximum filename length.

    Returns:
        Sanitized filename; "Untitled" when nothing usable remains.
    """
    if not name or not name.strip() or name == "Untitled":
        return "Untitled"

    safe = _ILLEGAL_CHARS.sub("", name).strip()
    safe = _WHITESPACE.sub("_", safe)
    safe = _EDGE_DOTS_AND_SPACES.sub("", safe)
    safe = _UNDERSCORE_RUNS.sub("_", safe)

    if not safe.strip():
        return "Untitled"

    return safe[:max_length]


def unique_filenames(entries: Iterable[tuple[str, str]]) -> list[str]:
    """Sanitized filenames for sibling (id, title) pairs, distinct from each other.

    The first sibling keeps the plain sanitized title; later siblings whose
    title sanitizes to a name already taken get a short id suffix.
    """
    taken: set[str] = set()
    names = []
    for resource_id, title in entries:
        name = sanitize_filename(title)
        if name.lower() in taken:
            name = f"{name[:MAX_FILENAME_LENGTH - 9]}_{resource_id.replace('-', '')[:8]}"
        taken.add(name.lower())
        names.append(name)
    return names


def safe_path_join(base: str | Path, part: str) -> Path:
    """Join part onto base without letting part climb out of base.

    Leading '../' (or '..\\') sequences and leading separators are dropped
    from part before joining.
    """
    cleaned = _PARENT_PREFIX.sub("", part).lstrip("/\\")
    return Path(base) / cleaned


def compose_document(metadata_comment: str, title: str, body: str, preamble: str = "") -> str:
    """Lay out an exported page: metadata comment, title heading, preamble, body."""
    return f"{metadata_comment}\n\n# {title}\n\n{preamble}{body}"


def format_timestamp(value: str) -> str:
    """Render a Notion ISO-8601 timestamp for humans, or return it unchanged."""
    if not value:
        return "Unknown"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def database_meta_markdown(database) -> str:
    """Markdown for a database's _meta.md file."""
    properties = "\n".join(
        f"- **{prop['name']}** ({prop['type']})" for prop in database.properties.values()
    )
    return (
        f"# {database.title}\n\n"
        f"{database.description or 'No description provided.'}\n\n"
        "## Database Information\n\n"
        f"- **ID**: {database.id}\n"
        f"- **Created**: {format_timestamp(database.created_time)}\n"
        f"- **Last Edited**: {format_timestamp(database.last_edited_time)}\n\n"
        "## Properties\n\n"
        f"{properties}\n\n"
        "---\n\n"
        "*This file contains metadata for the Notion database export.*\n"
    )


class MarkdownWriter:
    """Writes Markdown files for exported pages."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    def ensure_directory(self, path: Path) -> bool:
        """Create path (and parents) if needed. Returns True when it was created."""
        if path.is_dir():
            return False
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportIOError(path, e)
        self.logger.debug(f"Created directory: {path}")
        return True

    def write(self, file_path: Path, content: str) -> Path:
        """Write content to file_path as UTF-8, creating the directory.

        Returns:
            Path to the written file.
        """
        self.ensure_directory(file_path.parent)
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ExportIOError(file_path, e)

        self.logger.debug(f"Wrote markdown: {file_path}")
        return file_path
