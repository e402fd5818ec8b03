"""Reader-proxy provider (Jina Reader).

One GET per page through ``https://r.jina.ai/<url>``, which returns the page
as clean markdown-like text. There is no native multi-page mode: batches fan
out to ``scrape_one`` through a bounded worker pool with a per-page timeout.
"""

from __future__ import annotations

import asyncio

from ..domain.errors import ScraperDomainError
from ..domain.models import BatchScrapeResult, PageContent, ProviderName, ScrapeResult, UrlError
from ..observability.logger import get_logger
from ..utils.time import current_time_ms, elapsed_ms
from ..utils.validators import is_valid_http_url
from .http_fetcher import HttpFetcher
from .providers import ScrapingProvider

logger = get_logger(__name__)


class JinaReaderProvider(ScrapingProvider):
    name = ProviderName.JINA
    requires_discovery = True

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        base_url: str,
        api_key: str | None = None,
        concurrency: int = 3,
        page_timeout_seconds: float = 30.0,
    ):
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._concurrency = max(1, int(concurrency))
        self._page_timeout = float(page_timeout_seconds)

    def _failure(self, error: str) -> ScrapeResult:
        return ScrapeResult(success=False, provider=self.name, error=error)

    async def scrape_one(self, url: str) -> ScrapeResult:
        if not is_valid_http_url(url):
            return self._failure("Invalid URL format")

        headers = {"Accept": "text/plain"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            resp = await self._fetcher.fetch(f"{self._base_url}/{url}", headers=headers)
        except ScraperDomainError as e:
            return self._failure(str(e))

        if not resp.ok:
            return self._failure(f"Jina Reader failed: {resp.status}")
        if not resp.text or not resp.text.strip():
            return self._failure("No content extracted from website")
        return ScrapeResult(success=True, provider=self.name, content=resp.text)

    async def _scrape_bounded(self, url: str, pool: asyncio.Semaphore) -> ScrapeResult:
        async with pool:
            start_ms = current_time_ms()
            try:
                result = await asyncio.wait_for(self.scrape_one(url), timeout=self._page_timeout)
            except asyncio.TimeoutError:
                result = self._failure(f"Timed out after {self._page_timeout:g}s")
            if result.success:
                logger.debug("scrape_page_succeeded", url=url, elapsed_ms=elapsed_ms(start_ms))
            else:
                logger.info("scrape_page_failed", url=url, error=result.error, elapsed_ms=elapsed_ms(start_ms))
            return result

    async def scrape_many(self, urls: list[str], *, max_pages: int) -> BatchScrapeResult:
        """Scrape each URL independently, continuing past individual failures.

        Results are assembled by original position, so the output keeps the
        input (priority) order regardless of completion order.
        """
        targets = list(urls)[: max(1, int(max_pages))]
        pool = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(*(self._scrape_bounded(u, pool) for u in targets))

        pages: list[PageContent] = []
        errors: list[UrlError] = []
        for url, result in zip(targets, results):
            if result.success and result.content:
                pages.append(PageContent(url=url, content=result.content))
            else:
                errors.append(UrlError(url=url, error=result.error or "Unknown error"))

        logger.info("scrape_batch_finished", provider=self.name.value, scraped=len(pages), failed=len(errors))
        return BatchScrapeResult(
            pages=pages,
            errors=errors,
            total_scraped=len(pages),
            total_failed=len(errors),
        )
