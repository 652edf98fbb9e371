# ABOUTME: Export metadata embedded at the top of every generated file.
# ABOUTME: Reads it back from earlier exports to decide whether a page changed.

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from ..notion.pages import Page

logger = logging.getLogger(__name__)

METADATA_SENTINEL = "<!-- ** GENERATED_BY_NOTION_EXPORTER **"
METADATA_CLOSING = "-->"


@dataclass(frozen=True)
class ExportedMetadata:
    """Page fields persisted in the output file. Field order is the JSON key order."""
    id: str
    created_time: str
    last_edited_time: str
    url: str
    archived: bool
    in_trash: bool
    public_url: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedMetadata":
        return cls(
            id=data.get("id", ""),
            created_time=data.get("created_time", ""),
            last_edited_time=data.get("last_edited_time", ""),
            url=data.get("url", ""),
            archived=bool(data.get("archived", False)),
            in_trash=bool(data.get("in_trash", False)),
            public_url=data.get("public_url"),
        )


def current_metadata(page: Page) -> ExportedMetadata:
    """Project a fetched page onto the metadata stored in its export."""
    return ExportedMetadata(
        id=page.id,
        created_time=page.created_time,
        last_edited_time=page.last_edited_time,
        url=page.url,
        archived=page.archived,
        in_trash=page.in_trash,
        public_url=page.public_url,
    )


def render_metadata_comment(metadata: ExportedMetadata, extra: dict[str, Any] | None = None) -> str:
    """Render the leading HTML comment holding the metadata as JSON.

    Args:
        metadata: The page metadata.
        extra: Additional keys appended after the fixed fields (e.g. database
            item properties).
    """
    payload = metadata.to_dict()
    if extra:
        payload.update(extra)
    body = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    return f"{METADATA_SENTINEL}\n{body}\n{METADATA_CLOSING}"


def parse_metadata_comment(text: str) -> ExportedMetadata | None:
    """Parse the metadata comment at the start of an exported file's text."""
    lines = text.split("\n")
    if not lines or not lines[0].startswith(METADATA_SENTINEL):
        return None

    try:
        end = next(i for i, line in enumerate(lines[1:], start=1) if line.strip() == METADATA_CLOSING)
    except StopIteration:
        return None

    try:
        data = json.loads("\n".join(lines[1:end]))
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict) or "last_edited_time" not in data:
        return None
    return ExportedMetadata.from_dict(data)


def read_prior_metadata(path: Path) -> ExportedMetadata | None:
    """Read the metadata of an earlier export, None if absent or unreadable."""
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read existing export {path}: {e}")
        return None

    metadata = parse_metadata_comment(text)
    if metadata is None:
        logger.debug(f"No export metadata found in {path}")
    return metadata


def needs_update(current: ExportedMetadata, prior: ExportedMetadata | None) -> bool:
    """True unless a prior export carries the same last_edited_time."""
    if prior is None:
        return True
    return current.last_edited_time != prior.last_edited_time
