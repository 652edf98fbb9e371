# ABOUTME: Wrapper around the official Notion Python SDK (async client).
# ABOUTME: Adds pagination, rate limiting, 429 retries and typed errors.

import asyncio
import functools
import logging

from notion_client import AsyncClient
from notion_client.helpers import async_collect_paginated_api

from ..concurrency import RateLimiter
from ..errors import NOTION_CLIENT_ERRORS, translate_api_error


def _retry_after_seconds(error: Exception) -> float:
    headers = getattr(error, "headers", None)
    if not headers:
        return 1.0
    try:
        return float(headers.get("Retry-After", 1))
    except (TypeError, ValueError):
        return 1.0


def _without_empty_cursor(kwargs: dict) -> dict:
    # The pagination helper sends start_cursor=None on the first request.
    if kwargs.get("start_cursor") is None:
        kwargs.pop("start_cursor", None)
    return kwargs


def retry_on_rate_limit(func):
    """Decorator to retry a client coroutine on 429 responses.

    Uses the Retry-After header and the client's `max_retries`. Every
    notion-client error that escapes is translated into the exporter's
    error taxonomy.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        max_retries = self.max_retries
        for attempt in range(max_retries):
            try:
                return await func(self, *args, **kwargs)
            except NOTION_CLIENT_ERRORS as e:
                if getattr(e, "status", None) == 429 and attempt < max_retries - 1:
                    retry_after = _retry_after_seconds(e)
                    self.logger.warning(
                        f"Rate limited, retrying in {retry_after}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise translate_api_error(e) from e
        return None  # Unreachable but satisfies type checker
    return wrapper


class NotionClient:
    """Read-only access to Notion pages, blocks and databases."""

    def __init__(
        self,
        token: str,
        rate_limiter: RateLimiter | None = None,
        max_retries: int = 3,
        timeout_ms: int = 60_000,
        logger: logging.Logger | None = None,
    ):
        """Initialize the client.

        Args:
            token: Notion integration token.
            rate_limiter: Throttle shared by every request. None disables throttling.
            max_retries: Attempts per request when Notion answers 429.
            timeout_ms: Transport timeout handed to the SDK.
            logger: Logger for request diagnostics.
        """
        self._client = AsyncClient(auth=token, timeout_ms=timeout_ms)
        self._rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.logger = logger or logging.getLogger(__name__)

    async def _throttle(self) -> None:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

    @retry_on_rate_limit
    async def get_page(self, page_id: str) -> dict:
        """Retrieve a page by ID."""
        await self._throttle()
        self.logger.debug(f"Retrieving page {page_id}")
        return await self._client.pages.retrieve(page_id=page_id)

    @retry_on_rate_limit
    async def _list_children_request(self, **kwargs) -> dict:
        await self._throttle()
        return await self._client.blocks.children.list(**_without_empty_cursor(kwargs))

    async def get_blocks(self, block_id: str) -> list[dict]:
        """Retrieve all direct child blocks of a block/page, in API order."""
        blocks = await async_collect_paginated_api(self._list_children_request, block_id=block_id)
        self.logger.debug(f"Retrieved {len(blocks)} blocks for {block_id}")
        return blocks

    @retry_on_rate_limit
    async def get_database(self, database_id: str) -> dict:
        """Retrieve database schema by ID."""
        await self._throttle()
        self.logger.debug(f"Retrieving database {database_id}")
        return await self._client.databases.retrieve(database_id=database_id)

    @retry_on_rate_limit
    async def _query_request(self, **kwargs) -> dict:
        await self._throttle()
        return await self._client.databases.query(**_without_empty_cursor(kwargs))

    async def query_database(self, database_id: str, query: dict | None = None) -> list[dict]:
        """Query all rows from a database.

        Args:
            database_id: The database to query.
            query: Optional body (filter, sorts) passed through unchanged.
        """
        rows = await async_collect_paginated_api(
            self._query_request, database_id=database_id, **(query or {})
        )
        self.logger.debug(f"Database {database_id} returned {len(rows)} rows")
        return rows

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
