# ABOUTME: Renders Notion rich_text arrays as inline Markdown.
# ABOUTME: Also derives heading anchors for the generated table of contents.

import re

# Runs of whitespace, parentheses, '#', quotes and ':' collapse into one hyphen.
_ANCHOR_SEPARATORS = re.compile(r"""[\s()#"':]+""")


def render_segment(segment: dict) -> str:
    """Render one rich_text segment with its annotations and link."""
    text = segment.get("plain_text", "")
    annotations = segment.get("annotations") or {}

    # Fixed nesting order: bold, italic, strikethrough, code, underline.
    if annotations.get("bold"):
        text = f"**{text}**"
    if annotations.get("italic"):
        text = f"*{text}*"
    if annotations.get("strikethrough"):
        text = f"~~{text}~~"
    if annotations.get("code"):
        text = f"`{text}`"
    if annotations.get("underline"):
        text = f"<u>{text}</u>"

    if segment.get("href"):
        text = f"[{text}]({segment['href']})"

    return text


def render_rich_text(rich_text: list[dict] | None) -> str:
    """Render a rich_text array in API order. Plain text is not escaped."""
    return "".join(render_segment(segment) for segment in rich_text or [])


def heading_anchor(text: str) -> str:
    """GitHub-style anchor for a heading.

    Case and non-ASCII characters are kept as they are.

    >>> heading_anchor("API Reference (v2.0)")
    'API-Reference-v2.0-'
    """
    return _ANCHOR_SEPARATORS.sub("-", text)


def escape_table_cell(text: str) -> str:
    """Escape pipes and flatten newlines so text fits in one table cell."""
    return text.replace("|", "\\|").replace("\n", "<br>")
