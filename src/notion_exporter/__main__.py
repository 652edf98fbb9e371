# ABOUTME: CLI entry point for notion-exporter.
# ABOUTME: Exports a Notion page or database to Markdown and reports a summary.

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, load_config
from .errors import CredentialMissingError, NotionAPIError, NotionExporterError
from .export import create_exporter, create_summary, parse_query

BANNER_WIDTH = 50

TROUBLESHOOTING_TIPS = (
    "Check that your Notion API token is correct",
    "Verify that the page or database ID exists",
    "Ensure your integration has been shared with the page",
    "Check your network connectivity",
)


def setup_logging(log_path: Path | None = None, debug: bool = False) -> None:
    """Configure logging for the application.

    Args:
        log_path: Optional path for log file. If provided, enables rotating file logging.
        debug: Log at DEBUG instead of INFO.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Console handler (stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(log_format, date_format))
    root_logger.addHandler(console_handler)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(log_format, date_format))
        root_logger.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def debug_from_env() -> bool:
    return os.environ.get("DEBUG", "").lower() in ("1", "true", "yes")


def package_version() -> str:
    try:
        return version("notion-exporter")
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notion-exporter",
        description="Export Notion pages and databases to Markdown",
        epilog="The integration token is read from the NOTION_TOKEN environment variable.",
    )
    parser.add_argument("resource_id", help="ID of the Notion page or database to export")
    parser.add_argument(
        "destination",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Directory to write Markdown files to (default: current directory)",
    )
    parser.add_argument(
        "--recursive", "-r",
        action="store_true",
        default=None,
        help="Also export subpages and child databases",
    )
    parser.add_argument("--name", "-n", help="Filename for the exported page (pages only)")
    parser.add_argument("--query", "-q", help="JSON filter/sorts for database exports")
    parser.add_argument("--config", "-c", type=Path, help="Path to a YAML config file")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file (rotated)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--no-images",
        dest="download_images",
        action="store_false",
        default=None,
        help="Keep remote image URLs instead of downloading images",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    return parser


async def run_export(args: argparse.Namespace, config) -> list:
    """Run one export and return every ExportResult it produced."""
    query = parse_query(args.query)
    exporter = create_exporter(config)
    try:
        await exporter.export_resource(args.resource_id, args.destination, args.name, query)
    finally:
        await exporter.aclose()
    return exporter.results


def log_troubleshooting(logger: logging.Logger) -> None:
    logger.error("Troubleshooting tips:")
    for number, tip in enumerate(TROUBLESHOOTING_TIPS, start=1):
        logger.error(f"{number}. {tip}")
    logger.error("For more detailed logs, run with --debug or DEBUG=true")


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    setup_logging(args.log_file, debug=args.debug or debug_from_env())
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config).with_overrides(
            recursive=args.recursive,
            download_images=args.download_images,
        )
        config.get_token()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except CredentialMissingError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("=" * BANNER_WIDTH)
    logger.info("Notion to Markdown Exporter")
    logger.info(f"- Resource ID: {args.resource_id}")
    logger.info(f"- Destination: {args.destination}")
    logger.info(f"- Recursive: {'enabled' if config.recursive else 'disabled'}")
    if args.name:
        logger.info(f"- Custom filename: {args.name}")
    logger.info("=" * BANNER_WIDTH)

    start_time = datetime.now(timezone.utc)
    try:
        results = asyncio.run(run_export(args, config))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except NotionExporterError as e:
        logger.error("Export failed!")
        logger.error(f"{type(e).__name__}: {e}")
        if isinstance(e, NotionAPIError) and e.code:
            logger.error(f"Notion error code: {e.code}")
        log_troubleshooting(logger)
        sys.exit(1)

    summary = create_summary(start_time, results)
    logger.info("=" * BANNER_WIDTH)
    logger.info(
        f"Export {summary.status}: {summary.exported} exported, "
        f"{summary.skipped} unchanged, {summary.failed} failed ({summary.duration_seconds:.1f}s)"
    )
    for result in results:
        if result.success:
            logger.debug(f"- {result.page_title}: {result.path}")
    for failure in summary.failures:
        logger.warning(f"Failed: '{failure['title']}' ({failure['id']})")
    logger.info("=" * BANNER_WIDTH)

    if summary.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
