# ABOUTME: Markdown conversion package.
# ABOUTME: Exports the block converter, image pipeline and file writer helpers.

from .converter import MarkdownConverter
from .images import ImageAssetPipeline, image_filename
from .rich_text import heading_anchor, render_rich_text
from .writer import MarkdownWriter, compose_document, safe_path_join, sanitize_filename

__all__ = [
    "MarkdownConverter",
    "ImageAssetPipeline",
    "image_filename",
    "heading_anchor",
    "render_rich_text",
    "MarkdownWriter",
    "compose_document",
    "safe_path_join",
    "sanitize_filename",
]
