"""Full-crawl provider (Firecrawl).

Single pages go through ``POST /v1/scrape``. Batches start a native crawl job
(``POST /v1/crawl``) from the site root and poll it until it settles, so URL
discovery is skipped for this provider.
"""

from __future__ import annotations

import asyncio
from typing import Any

from ..domain.errors import ScraperDomainError
from ..domain.models import BatchScrapeResult, PageContent, ProviderName, ScrapeResult, UrlError
from ..observability.logger import get_logger
from ..utils.url_priority import get_url_priority
from ..utils.validators import is_valid_http_url
from .http_fetcher import HttpFetcher, HttpResponse
from .providers import ScrapingProvider

logger = get_logger(__name__)


def _error_message(resp: HttpResponse) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP {resp.status}"


def _page_url(page: dict[str, Any], fallback: str) -> str:
    metadata = page.get("metadata") if isinstance(page.get("metadata"), dict) else {}
    return str(page.get("sourceURL") or metadata.get("sourceURL") or metadata.get("url") or fallback)


class FirecrawlProvider(ScrapingProvider):
    name = ProviderName.FIRECRAWL
    requires_discovery = False

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        base_url: str,
        api_key: str | None,
        poll_interval_seconds: float = 2.0,
        max_polls: int = 300,
    ):
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._poll_interval = float(poll_interval_seconds)
        self._max_polls = int(max_polls)

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self._api_key}"}

    def _failure(self, error: str) -> ScrapeResult:
        return ScrapeResult(success=False, provider=self.name, error=error)

    async def scrape_one(self, url: str) -> ScrapeResult:
        if not is_valid_http_url(url):
            return self._failure("Invalid URL format")
        if not self._api_key:
            return self._failure("FIRECRAWL_API_KEY not configured")

        try:
            resp = await self._fetcher.fetch(
                f"{self._base_url}/v1/scrape",
                method="POST",
                headers=self._headers(),
                json_body={"url": url, "formats": ["markdown"]},
            )
        except ScraperDomainError as e:
            return self._failure(str(e))

        if not resp.ok:
            return self._failure(f"Firecrawl failed: {resp.status} - {_error_message(resp)}")

        try:
            data = resp.json()
        except ValueError:
            return self._failure("Firecrawl returned invalid JSON")

        if not isinstance(data, dict):
            return self._failure("No content extracted from website")
        inner = data.get("data")
        markdown = inner.get("markdown") if isinstance(inner, dict) else None
        if not data.get("success") or not isinstance(markdown, str) or not markdown.strip():
            return self._failure("No content extracted from website")
        return ScrapeResult(success=True, provider=self.name, content=markdown)

    def _batch_failure(self, root_url: str, error: str) -> BatchScrapeResult:
        logger.warning("firecrawl_crawl_failed", root_url=root_url, error=error)
        return BatchScrapeResult(
            pages=[],
            errors=[UrlError(url=root_url, error=error)],
            total_scraped=0,
            total_failed=1,
        )

    async def scrape_many(self, urls: list[str], *, max_pages: int) -> BatchScrapeResult:
        """Crawl from ``urls[0]`` (the site root) with a page ceiling of ``max_pages``."""
        if not urls:
            return BatchScrapeResult(pages=[], errors=[], total_scraped=0, total_failed=0)
        root_url = urls[0]
        if not self._api_key:
            return self._batch_failure(root_url, "FIRECRAWL_API_KEY not configured")

        try:
            start = await self._fetcher.fetch(
                f"{self._base_url}/v1/crawl",
                method="POST",
                headers=self._headers(),
                json_body={
                    "url": root_url,
                    "limit": int(max_pages),
                    "scrapeOptions": {"formats": ["markdown"]},
                },
            )
        except ScraperDomainError as e:
            return self._batch_failure(root_url, str(e))

        if not start.ok:
            return self._batch_failure(root_url, f"Failed to start crawl: {_error_message(start)}")
        try:
            payload = start.json()
            crawl_id = payload.get("id") if isinstance(payload, dict) else None
        except ValueError:
            crawl_id = None
        if not crawl_id:
            return self._batch_failure(root_url, "No crawl ID returned from Firecrawl")

        logger.info("firecrawl_crawl_started", root_url=root_url, crawl_id=crawl_id, limit=max_pages)

        for poll in range(self._max_polls):
            await asyncio.sleep(self._poll_interval)
            try:
                status_resp = await self._fetcher.fetch(
                    f"{self._base_url}/v1/crawl/{crawl_id}",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                status = status_resp.json() if status_resp.ok else None
            except (ScraperDomainError, ValueError) as e:
                logger.info("firecrawl_poll_failed", crawl_id=crawl_id, poll=poll, error=str(e))
                continue
            if not isinstance(status, dict):
                continue

            state = status.get("status")
            if state == "completed":
                return self._collect_pages(root_url, status.get("data") or [])
            if state == "failed":
                return self._batch_failure(root_url, str(status.get("error") or "Crawl failed"))

        return self._batch_failure(root_url, f"Crawl timed out after {self._max_polls} polls")

    def _collect_pages(self, root_url: str, data: list[Any]) -> BatchScrapeResult:
        pages: list[PageContent] = []
        skipped = 0
        for page in data:
            if not isinstance(page, dict):
                continue
            markdown = page.get("markdown")
            if not isinstance(markdown, str) or not markdown.strip():
                skipped += 1
                continue
            pages.append(PageContent(url=_page_url(page, root_url), content=markdown))

        # The crawler returns pages in crawl order; rank them like discovered URLs.
        pages.sort(key=lambda p: get_url_priority(p.url))
        logger.info("firecrawl_crawl_completed", root_url=root_url, pages=len(pages), skipped=skipped)
        if not pages:
            return self._batch_failure(root_url, "No content extracted from website")
        return BatchScrapeResult(pages=pages, errors=[], total_scraped=len(pages), total_failed=0)
