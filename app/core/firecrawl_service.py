"""Firecrawl service for crawling the public regulations website."""

import asyncio
import time

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import UpstreamCrawlError
from app.core.logging import get_logger
from app.core.schemas_regulations import CrawledPage, CrawlStatus

logger = get_logger(__name__)

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v1"


class FirecrawlClient:
    """Starts a Firecrawl crawl job and polls it to completion."""

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: int = 60,
        poll_interval: float = 3.0,
        max_wait: float = 600.0,
        base_url: str = FIRECRAWL_BASE_URL,
    ):
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirecrawlClient":
        return cls(
            api_key=settings.FIRECRAWL_API_KEY,
            timeout=settings.FIRECRAWL_TIMEOUT,
            poll_interval=settings.FIRECRAWL_POLL_INTERVAL,
            max_wait=settings.FIRECRAWL_MAX_WAIT,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _start_crawl(self, url: str, limit: int) -> str:
        response = await self._http.post(
            f"{self.base_url}/crawl",
            headers=self._headers,
            json={
                "url": url,
                "limit": limit,
                "allowBackwardLinks": True,
                "scrapeOptions": {
                    "formats": ["markdown"],
                    "onlyMainContent": True,
                },
            },
        )
        response.raise_for_status()

        data = response.json()
        if not data.get("success") or not data.get("id"):
            raise UpstreamCrawlError(f"Crawl failed to start: {data.get('error', 'Unknown error')}")
        return data["id"]

    async def _get_status(self, status_url: str) -> CrawlStatus:
        response = await self._http.get(status_url, headers=self._headers)
        response.raise_for_status()
        return CrawlStatus.model_validate(response.json())

    async def crawl(self, url: str, limit: int = 50) -> list[CrawledPage]:
        """
        Crawl a site and return its pages as markdown.

        Args:
            url: Crawl root
            limit: Max pages to crawl

        Returns:
            Crawled pages, in the order Firecrawl returns them

        Raises:
            UpstreamCrawlError: If the crawl fails, times out, or returns
                a malformed payload
        """
        logger.info(f"Crawling website: {url} (limit {limit})")

        try:
            crawl_id = await self._start_crawl(url, limit)
            status_url = f"{self.base_url}/crawl/{crawl_id}"

            deadline = time.monotonic() + self.max_wait
            status = await self._get_status(status_url)
            while status.status not in ("completed", "failed", "cancelled"):
                if time.monotonic() > deadline:
                    raise UpstreamCrawlError(f"Crawl {crawl_id} did not finish within {self.max_wait}s")
                await asyncio.sleep(self.poll_interval)
                status = await self._get_status(status_url)

            if status.status != "completed":
                raise UpstreamCrawlError(f"Crawl {crawl_id} {status.status}: {status.error or 'Unknown error'}")

            pages = list(status.data)
            # Large results are paginated through "next" links
            while status.next:
                status = await self._get_status(status.next)
                pages.extend(status.data)

        except httpx.HTTPStatusError as e:
            raise UpstreamCrawlError(f"Firecrawl HTTP error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise UpstreamCrawlError(f"Firecrawl transport error: {e}") from e
        except ValidationError as e:
            raise UpstreamCrawlError(f"Malformed Firecrawl response: {e}") from e

        logger.info(f"Successfully crawled {len(pages)} pages from {url}")
        return pages[:limit]

    async def aclose(self) -> None:
        await self._http.aclose()
