"""Scraping provider interface.

The workflow talks to scraping backends only through this interface so the
two backends (single-URL reader proxy, native multi-page crawler) share one
call site.
"""

from __future__ import annotations

from typing import Mapping

from ..domain.models import BatchScrapeResult, ProviderName, ScrapeResult


class ScrapingProvider:
    name: ProviderName
    # False when the provider crawls the site itself and URL discovery is redundant.
    requires_discovery: bool = True

    async def scrape_one(self, url: str) -> ScrapeResult:  # pragma: no cover - interface
        raise NotImplementedError

    async def scrape_many(self, urls: list[str], *, max_pages: int) -> BatchScrapeResult:  # pragma: no cover - interface
        raise NotImplementedError


ProviderRegistry = Mapping[ProviderName, ScrapingProvider]
