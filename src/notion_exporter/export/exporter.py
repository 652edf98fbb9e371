# ABOUTME: Orchestrates exporting Notion pages and databases to Markdown files.
# ABOUTME: Skips unchanged pages, enriches child databases and recurses into subpages.

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from ..concurrency import RateLimiter, run_with_limit
from ..config import ConfigError, ExportConfig
from ..errors import NotionAPIError, NotionExporterError
from ..markdown import (
    ImageAssetPipeline,
    MarkdownConverter,
    MarkdownWriter,
    compose_document,
    safe_path_join,
    sanitize_filename,
)
from ..markdown.writer import database_meta_markdown, unique_filenames
from ..notion import (
    Block,
    BlockType,
    ChildRef,
    NotionClient,
    Page,
    extract_child_databases,
    extract_child_pages,
    fetch_block_tree,
    fetch_database,
    fetch_database_content,
    fetch_page,
    flatten_properties,
    format_property_value,
    is_database,
    iter_blocks,
)
from .metadata import current_metadata, needs_update, read_prior_metadata, render_metadata_comment
from .summary import ExportResult

# Subpages and database items exported at once
EXPORT_CONCURRENCY = 3

DATABASES_DIR = "databases"
DATABASE_META_FILENAME = "_meta.md"


def parse_query(query_string: str | None) -> dict | None:
    """Parse a JSON database query (filter/sorts) given on the command line."""
    if not query_string:
        return None
    try:
        query = json.loads(query_string)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON query: {e}")
    if not isinstance(query, dict):
        raise ConfigError("Database query must be a JSON object")
    return query


def property_summary(properties: dict[str, Any]) -> str:
    """One-line '**name**: value | ...' summary of non-empty properties."""
    return " | ".join(
        f"**{key}**: {format_property_value(value)}"
        for key, value in properties.items()
        if value is not None and value != ""
    )


class NotionExporter:
    """Exports pages and databases from Notion into a directory tree.

    Every ExportResult produced while the exporter is in use (including
    those of recursively exported subpages and database items) is appended
    to `results`.
    """

    def __init__(
        self,
        client: NotionClient,
        converter: MarkdownConverter | None = None,
        writer: MarkdownWriter | None = None,
        recursive: bool = False,
        download_images: bool = True,
        concurrency: int = EXPORT_CONCURRENCY,
        logger: logging.Logger | None = None,
    ):
        """Initialize the exporter.

        Args:
            client: The Notion API client.
            converter: Block to Markdown converter.
            writer: File writer.
            recursive: Also export subpages and child databases.
            download_images: Store images next to the exported files;
                otherwise keep their remote URLs.
            concurrency: Subpages or database items exported at once.
            logger: Logger for progress and diagnostics.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.recursive = recursive
        self.download_images = download_images
        self.concurrency = concurrency
        self.converter = converter or MarkdownConverter(
            images=ImageAssetPipeline(logger=self.logger),
            local_database_links=recursive,
            logger=self.logger,
        )
        self.writer = writer or MarkdownWriter(logger=self.logger)
        self.results: list[ExportResult] = []

    async def export_page(
        self,
        page_id: str,
        destination: str | Path,
        custom_name: str | None = None,
    ) -> ExportResult:
        """Export one page to <destination>/<filename>.md.

        Args:
            page_id: The page to export.
            destination: Directory receiving the Markdown file.
            custom_name: Filename to use instead of the page title.

        Returns:
            ExportResult for the page. Subpage results are in `results`.

        Raises:
            NotionExporterError: Fetching the page or its blocks, or writing
                the file, failed.
        """
        destination = Path(destination)
        try:
            page = await fetch_page(self.client, page_id)
            filename = sanitize_filename(custom_name or page.title)
            file_path = safe_path_join(destination, f"{filename}.md")
            metadata = current_metadata(page)

            if not needs_update(metadata, read_prior_metadata(file_path)):
                self.logger.info(f"Page '{page.title}' has not changed since last export, skipping")
                return self._record(ExportResult(
                    success=True,
                    page_id=page.id,
                    page_title=page.title,
                    path=str(file_path),
                    skipped=True,
                ))

            self.logger.info(f"Exporting page '{page.title}' ({page.id})")
            blocks = await self._fetch_content(page.id)
            body = await self.converter.convert(blocks, self._asset_dir(destination))
            self.writer.write(
                file_path,
                compose_document(render_metadata_comment(metadata), page.title, body),
            )
            self.logger.info(f"Exported '{page.title}' to {file_path}")
            result = self._record(ExportResult(
                success=True,
                page_id=page.id,
                page_title=page.title,
                path=str(file_path),
            ))
        except NotionExporterError as e:
            self._log_failure(page_id, e)
            raise

        if self.recursive:
            await self._export_children(blocks, destination, filename)
        return result

    async def export_database(
        self,
        database_id: str,
        destination: str | Path,
        query: dict | None = None,
    ) -> list[ExportResult]:
        """Export a database to <destination>/databases/<database_id>/.

        Writes _meta.md plus one file per item. Item failures become failed
        ExportResults; fetching the database or its items propagates.

        Args:
            database_id: The database to export.
            destination: Directory receiving the databases/ folder.
            query: Filter/sorts passed through to the database query.
        """
        try:
            database = await fetch_database(self.client, database_id)
            database_dir = safe_path_join(safe_path_join(destination, DATABASES_DIR), database.id or database_id)
            self.logger.info(f"Exporting database '{database.title}' ({database_id}) to {database_dir}")

            self.writer.write(database_dir / DATABASE_META_FILENAME, database_meta_markdown(database))
            rows = await self.client.query_database(database_id, query)
        except NotionExporterError as e:
            self._log_failure(database_id, e)
            raise

        self.logger.info(f"Database '{database.title}' has {len(rows)} items")
        items = [Page.from_response(row) for row in rows]
        filenames = unique_filenames((item.id, item.title) for item in items)

        async def export_one(entry: tuple[Page, str]) -> ExportResult:
            item, filename = entry
            try:
                return await self._export_database_item(item, filename, database_dir)
            except Exception as e:
                self.logger.warning(f"Failed to export database item '{item.title}' ({item.id}): {e}")
                return self._record(ExportResult(
                    success=False,
                    page_id=item.id,
                    page_title=item.title,
                    path=str(safe_path_join(database_dir, f"{filename}.md")),
                ))

        return await run_with_limit(zip(items, filenames), export_one, self.concurrency)

    async def _export_database_item(self, item: Page, filename: str, database_dir: Path) -> ExportResult:
        properties = flatten_properties(item.properties)
        file_path = safe_path_join(database_dir, f"{filename}.md")
        metadata = current_metadata(item)

        if not needs_update(metadata, read_prior_metadata(file_path)):
            self.logger.info(f"Database item '{item.title}' has not changed since last export, skipping")
            return self._record(ExportResult(
                success=True,
                page_id=item.id,
                page_title=item.title,
                path=str(file_path),
                metadata=properties,
                skipped=True,
            ))

        self.logger.info(f"Exporting database item '{item.title}' ({item.id})")
        blocks = await self._fetch_content(item.id)
        body = await self.converter.convert(blocks, self._asset_dir(database_dir))

        summary = property_summary(properties)
        preamble = f"{summary}\n\n---\n\n" if summary else ""
        self.writer.write(
            file_path,
            compose_document(
                render_metadata_comment(metadata, {"properties": properties}),
                item.title,
                body,
                preamble,
            ),
        )
        result = self._record(ExportResult(
            success=True,
            page_id=item.id,
            page_title=item.title,
            path=str(file_path),
            metadata=properties,
        ))

        if self.recursive:
            await self._export_children(blocks, database_dir, filename)
        return result

    async def export_resource(
        self,
        resource_id: str,
        destination: str | Path,
        custom_name: str | None = None,
        query: dict | None = None,
    ) -> ExportResult | list[ExportResult]:
        """Export a page or a database, whichever resource_id refers to."""
        if await is_database(self.client, resource_id):
            self.logger.info(f"{resource_id} is a database")
            if custom_name:
                self.logger.warning("A custom name only applies to pages, ignoring it")
            return await self.export_database(resource_id, destination, query)

        self.logger.info(f"{resource_id} is a page")
        return await self.export_page(resource_id, destination, custom_name)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _fetch_content(self, page_id: str) -> tuple[Block, ...]:
        blocks = await fetch_block_tree(self.client, page_id, logger=self.logger)
        self.logger.debug(f"Retrieved {len(blocks)} top-level blocks for {page_id}")
        return await self._enrich_child_databases(blocks)

    async def _enrich_child_databases(self, blocks: Sequence[Block]) -> tuple[Block, ...]:
        """Attach database items to child_database blocks, at any depth.

        Blocks are rebuilt rather than modified. A database that cannot be
        fetched keeps its block unchanged and renders as a link.
        """
        enriched = []
        for block in blocks:
            if block.type is BlockType.CHILD_DATABASE:
                try:
                    content = await fetch_database_content(self.client, block.id)
                except NotionExporterError as e:
                    self.logger.warning(f"Could not load child database {block.id}: {e}")
                else:
                    block = replace(block, database_content=content)
            elif block.children and block.type is not BlockType.CHILD_PAGE:
                block = replace(block, children=await self._enrich_child_databases(block.children))
            enriched.append(block)
        return tuple(enriched)

    async def _export_children(self, blocks: Sequence[Block], destination: Path, parent_filename: str) -> None:
        """Export subpages into <destination>/<parent_filename>/ and child
        databases into <destination>/databases/."""
        nested = list(iter_blocks(blocks))
        subpages = extract_child_pages(nested)
        databases = extract_child_databases(nested)
        if not subpages and not databases:
            return

        if subpages:
            subpage_dir = safe_path_join(destination, parent_filename)
            self.logger.info(f"Exporting {len(subpages)} subpages to {subpage_dir}")
            filenames = unique_filenames((ref.id, ref.title) for ref in subpages)

            async def export_subpage(entry: tuple[ChildRef, str]) -> None:
                ref, filename = entry
                try:
                    await self.export_page(ref.id, subpage_dir, filename)
                except Exception as e:
                    self.logger.warning(f"Failed to export subpage '{ref.title}' ({ref.id}): {e}")
                    self._record(ExportResult(
                        success=False,
                        page_id=ref.id,
                        page_title=ref.title,
                        path=str(safe_path_join(subpage_dir, f"{filename}.md")),
                    ))

            await run_with_limit(zip(subpages, filenames), export_subpage, self.concurrency)

        for ref in databases:
            try:
                await self.export_database(ref.id, destination)
            except Exception as e:
                self.logger.error(f"Failed to export child database '{ref.title}' ({ref.id}): {e}")
                self._record(ExportResult(
                    success=False,
                    page_id=ref.id,
                    page_title=ref.title,
                    path=str(safe_path_join(safe_path_join(destination, DATABASES_DIR), ref.id)),
                ))

    def _asset_dir(self, directory: Path) -> Path | str:
        return directory if self.download_images else ""

    def _record(self, result: ExportResult) -> ExportResult:
        self.results.append(result)
        return result

    def _log_failure(self, resource_id: str, error: NotionExporterError) -> None:
        self.logger.error(f"Error exporting {resource_id}: {error}")
        if isinstance(error, NotionAPIError):
            self.logger.error(f"Error details: code={error.code} status={error.status}")


def create_exporter(config: ExportConfig, logger: logging.Logger | None = None) -> NotionExporter:
    """Build an exporter from configuration.

    Raises:
        CredentialMissingError: The token environment variable is not set.
    """
    token = config.get_token()
    client = NotionClient(
        token,
        rate_limiter=RateLimiter(calls_per_second=config.requests_per_second),
        max_retries=config.max_retries,
        timeout_ms=config.timeout_ms,
        logger=logger,
    )
    return NotionExporter(
        client,
        recursive=config.recursive,
        download_images=config.download_images,
        logger=logger,
    )


async def export_notion_page(
    page_id: str,
    destination: str | Path,
    recursive: bool = False,
    custom_name: str | None = None,
    config: ExportConfig | None = None,
) -> ExportResult:
    """Export a single page using a token from the environment."""
    config = (config or ExportConfig()).with_overrides(recursive=recursive or None)
    exporter = create_exporter(config)
    try:
        return await exporter.export_page(page_id, destination, custom_name)
    finally:
        await exporter.aclose()


async def export_notion_database(
    database_id: str,
    destination: str | Path,
    recursive: bool = False,
    query: dict | None = None,
    config: ExportConfig | None = None,
) -> list[ExportResult]:
    """Export a database and its items using a token from the environment."""
    config = (config or ExportConfig()).with_overrides(recursive=recursive or None)
    exporter = create_exporter(config)
    try:
        return await exporter.export_database(database_id, destination, query)
    finally:
        await exporter.aclose()


async def export_notion_resource(
    resource_id: str,
    destination: str | Path,
    recursive: bool = False,
    custom_name: str | None = None,
    query: dict | None = None,
    config: ExportConfig | None = None,
) -> ExportResult | list[ExportResult]:
    """Export a page or database, detecting which one resource_id is."""
    config = (config or ExportConfig()).with_overrides(recursive=recursive or None)
    exporter = create_exporter(config)
    try:
        return await exporter.export_resource(resource_id, destination, custom_name, query)
    finally:
        await exporter.aclose()
