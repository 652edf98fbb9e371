# ABOUTME: Export orchestration package.
# ABOUTME: Exports the exporter, update detection and run summaries.

from .exporter import (
    NotionExporter,
    create_exporter,
    export_notion_database,
    export_notion_page,
    export_notion_resource,
    parse_query,
)
from .metadata import (
    ExportedMetadata,
    current_metadata,
    needs_update,
    parse_metadata_comment,
    read_prior_metadata,
    render_metadata_comment,
)
from .summary import ExportResult, ExportSummary, create_summary

__all__ = [
    "NotionExporter",
    "create_exporter",
    "export_notion_database",
    "export_notion_page",
    "export_notion_resource",
    "parse_query",
    "ExportedMetadata",
    "current_metadata",
    "needs_update",
    "parse_metadata_comment",
    "read_prior_metadata",
    "render_metadata_comment",
    "ExportResult",
    "ExportSummary",
    "create_summary",
]
