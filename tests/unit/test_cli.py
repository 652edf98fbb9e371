"""Tests for the command line entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from notion_exporter import __main__ as cli
from notion_exporter.errors import UnauthorizedError
from notion_exporter.export import ExportResult


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch.object(cli, "setup_logging"):
        yield


def _run(monkeypatch, *argv: str) -> int:
    monkeypatch.setattr("sys.argv", ["notion-exporter", *argv])
    try:
        cli.main()
    except SystemExit as e:
        return e.code
    return 0


class TestParser:

    def test_defaults(self):
        args = cli.build_parser().parse_args(["abc123"])
        assert args.resource_id == "abc123"
        assert args.destination == Path(".")
        assert args.recursive is None
        assert args.download_images is None
        assert args.name is None

    def test_all_options(self):
        args = cli.build_parser().parse_args([
            "abc123", "out", "-r", "-n", "Custom", "-q", '{"sorts": []}',
            "-c", "config.yaml", "--log-file", "logs/export.log", "--debug", "--no-images",
        ])
        assert args.destination == Path("out")
        assert args.recursive is True
        assert args.name == "Custom"
        assert args.query == '{"sorts": []}'
        assert args.config == Path("config.yaml")
        assert args.log_file == Path("logs/export.log")
        assert args.debug is True
        assert args.download_images is False


class TestMain:

    def test_missing_token_exits(self, monkeypatch, caplog):
        monkeypatch.delenv("NOTION_TOKEN", raising=False)
        with caplog.at_level(logging.ERROR):
            assert _run(monkeypatch, "abc123") == 1
        assert "NOTION_TOKEN" in caplog.text

    def test_bad_config_exits(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        assert _run(monkeypatch, "abc123", "-c", str(tmp_path / "missing.yaml")) == 1

    def test_successful_export(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        results = [ExportResult(True, "abc123", "Page", str(tmp_path / "Page.md"))]
        with patch.object(cli, "run_export", new=AsyncMock(return_value=results)) as run:
            assert _run(monkeypatch, "abc123", str(tmp_path), "--recursive") == 0

        args, config = run.await_args.args
        assert args.resource_id == "abc123"
        assert config.recursive is True

    def test_failed_children_exit_non_zero(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        results = [
            ExportResult(True, "abc123", "Page", "Page.md"),
            ExportResult(False, "sub", "Sub", "Page/Sub.md"),
        ]
        with patch.object(cli, "run_export", new=AsyncMock(return_value=results)):
            assert _run(monkeypatch, "abc123", str(tmp_path)) == 1

    def test_export_error_prints_troubleshooting(self, monkeypatch, caplog):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        error = UnauthorizedError("API token is invalid.", code="unauthorized", status=401)
        with patch.object(cli, "run_export", new=AsyncMock(side_effect=error)):
            with caplog.at_level(logging.ERROR):
                assert _run(monkeypatch, "abc123") == 1

        assert "UnauthorizedError: API token is invalid." in caplog.text
        assert "Troubleshooting tips:" in caplog.text
        assert "shared with the page" in caplog.text

    def test_invalid_query_exits(self, monkeypatch):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        with patch.object(cli, "create_exporter") as create:
            assert _run(monkeypatch, "abc123", "-q", "{not json") == 1
        create.assert_not_called()

    def test_connection_error_prints_troubleshooting(self, monkeypatch, caplog):
        monkeypatch.setenv("NOTION_TOKEN", "secret_test")
        sdk = MagicMock()
        sdk.databases.retrieve = AsyncMock(side_effect=httpx.ConnectError("Name or service not known"))
        sdk.pages.retrieve = AsyncMock(side_effect=httpx.ConnectError("Name or service not known"))
        sdk.aclose = AsyncMock()

        with patch("notion_exporter.notion.client.AsyncClient", return_value=sdk):
            with caplog.at_level(logging.ERROR):
                assert _run(monkeypatch, "abc123") == 1

        assert "NotionAPIError: Name or service not known" in caplog.text
        assert "Notion error code: network_error" in caplog.text
        assert "Check your network connectivity" in caplog.text
        sdk.aclose.assert_awaited_once()
