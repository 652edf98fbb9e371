"""Tests for the embedded export metadata and update detection."""

from __future__ import annotations

import json

from conftest import page_response

from notion_exporter.export.metadata import (
    METADATA_SENTINEL,
    ExportedMetadata,
    current_metadata,
    needs_update,
    parse_metadata_comment,
    read_prior_metadata,
    render_metadata_comment,
)
from notion_exporter.notion import Page


def _metadata(last_edited_time: str = "2024-01-02T10:00:00.000Z") -> ExportedMetadata:
    return current_metadata(Page.from_response(page_response(last_edited_time=last_edited_time)))


class TestRenderAndParse:

    def test_comment_layout(self):
        comment = render_metadata_comment(_metadata())
        lines = comment.split("\n")
        assert lines[0] == METADATA_SENTINEL
        assert lines[1] == "{"
        assert lines[2] == '  "id": "page-1",'
        assert lines[-1] == "-->"

    def test_key_order(self):
        comment = render_metadata_comment(_metadata())
        data = json.loads("\n".join(comment.split("\n")[1:-1]))
        assert list(data) == [
            "id", "created_time", "last_edited_time", "url", "archived", "in_trash", "public_url",
        ]

    def test_round_trip_is_byte_identical(self):
        metadata = _metadata()
        comment = render_metadata_comment(metadata)
        parsed = parse_metadata_comment(f"{comment}\n\n# Title\n\nBody")
        assert parsed == metadata
        assert render_metadata_comment(parsed) == comment

    def test_extra_keys_are_appended(self):
        comment = render_metadata_comment(_metadata(), {"properties": {"Status": "Done", "Tags": ["a", "b"]}})
        data = json.loads("\n".join(comment.split("\n")[1:-1]))
        assert list(data)[-1] == "properties"
        assert data["properties"]["Tags"] == ["a", "b"]
        assert parse_metadata_comment(comment) == _metadata()

    def test_non_ascii_is_written_verbatim(self):
        comment = render_metadata_comment(_metadata(), {"properties": {"Name": "Größe"}})
        assert "Größe" in comment


class TestParseMalformed:

    def test_missing_sentinel(self):
        assert parse_metadata_comment("# Just markdown") is None

    def test_sentinel_not_on_first_line(self):
        comment = render_metadata_comment(_metadata())
        assert parse_metadata_comment(f"\n{comment}") is None

    def test_missing_closing_marker(self):
        assert parse_metadata_comment(f"{METADATA_SENTINEL}\n{{\"last_edited_time\": \"x\"}}") is None

    def test_invalid_json(self):
        assert parse_metadata_comment(f"{METADATA_SENTINEL}\n{{not json\n-->") is None

    def test_json_without_edit_time(self):
        assert parse_metadata_comment(f"{METADATA_SENTINEL}\n{{\"id\": \"x\"}}\n-->") is None


class TestReadPriorMetadata:

    def test_missing_file(self, tmp_path):
        assert read_prior_metadata(tmp_path / "absent.md") is None

    def test_reads_existing_export(self, tmp_path):
        path = tmp_path / "Page.md"
        path.write_text(f"{render_metadata_comment(_metadata())}\n\n# Page\n\nBody", encoding="utf-8")
        assert read_prior_metadata(path) == _metadata()

    def test_file_without_metadata(self, tmp_path):
        path = tmp_path / "Page.md"
        path.write_text("# Hand written\n", encoding="utf-8")
        assert read_prior_metadata(path) is None

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "Page.md"
        path.write_bytes(b"\xff\xfe\x00binary")
        assert read_prior_metadata(path) is None


class TestNeedsUpdate:

    def test_no_prior_export(self):
        assert needs_update(_metadata(), None) is True

    def test_same_edit_time(self):
        assert needs_update(_metadata(), _metadata()) is False

    def test_changed_edit_time(self):
        assert needs_update(_metadata("2024-02-01T00:00:00.000Z"), _metadata()) is True
