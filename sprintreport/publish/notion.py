"""
Notion publisher - creates the report page and appends overflow blocks.

The pages endpoint accepts at most 100 children, so the first 100 blocks go
with the page creation request and the rest are appended in order, 100 per
request.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from sprintreport.config import Settings
from sprintreport.exceptions import ConfigurationError, PartialPageError, TransportError
from sprintreport.models import PageResult
from sprintreport.publish.blocks import Block, chunk_blocks

logger = logging.getLogger(__name__)

SERVICE = "document_host"
NOTION_PAGE_BASE_URL = "https://www.notion.so"


def page_url(page_id: str) -> str:
    return f"{NOTION_PAGE_BASE_URL}/{page_id.replace('-', '')}"


class NotionPublisher:
    """
    Async client for the Notion pages and blocks API.

    Usage:
        publisher = NotionPublisher(settings)
        page = await publisher.create_page(title, blocks)
        print(page.url)
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not settings.is_notion_configured():
            raise ConfigurationError(
                "NOTION_API_KEY and NOTION_PARENT_PAGE_ID are required",
                missing=[n for n in ("NOTION_API_KEY", "NOTION_PARENT_PAGE_ID") if n in settings.missing_required()],
            )
        self.api_key = settings.notion_api_key
        self.parent_page_id = settings.notion_parent_page_id
        self.base_url = settings.notion_api_base
        self.notion_version = settings.notion_version
        self.timeout = settings.http_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "Notion-Version": self.notion_version,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, url, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Notion API error ({status}) for {method} {url}: {e.response.text[:200]}")
            raise TransportError(SERVICE, f"HTTP {status} for {method} {url}", status_code=status) from e
        except httpx.RequestError as e:
            logger.error(f"Notion request failed for {method} {url}: {e}")
            raise TransportError(SERVICE, f"Request failed for {method} {url}: {e}") from e
        except ValueError as e:
            raise TransportError(SERVICE, f"Invalid JSON from {method} {url}") from e

    async def append_blocks(self, block_id: str, blocks: List[Block]) -> None:
        await self._request(
            "PATCH",
            f"/blocks/{block_id}/children",
            {"children": [b.to_api() for b in blocks]},
        )

    async def create_page(self, title: str, blocks: Sequence[Block]) -> PageResult:
        """
        Create a child page of the configured parent holding the given blocks.

        Raises:
            TransportError: page creation failed
            PartialPageError: the page exists but a later append batch failed
        """
        first, batches = chunk_blocks(blocks)

        logger.info(f"Creating Notion page: {title}")
        logger.debug(f"Page blocks: {len(first)} on creation, {len(batches)} append batch(es)")

        page = await self._request(
            "POST",
            "/pages",
            {
                "parent": {"page_id": self.parent_page_id},
                "properties": {
                    "title": {"title": [{"text": {"content": title}}]},
                },
                "children": [b.to_api() for b in first],
            },
        )

        page_id = page.get("id")
        if not page_id:
            raise TransportError(SERVICE, "Page creation response has no id")

        url = page_url(page_id)
        written = len(first)
        for batch in batches:
            try:
                await self.append_blocks(page_id, batch)
            except TransportError as e:
                logger.error(f"Notion page {url} left partial after {written} block(s)")
                raise PartialPageError(SERVICE, page_id, url, e, written) from e
            written += len(batch)

        logger.info(f"Notion page created: {url}")
        return PageResult(id=page_id, url=url, blocks_written=len(blocks))
