"""One-shot, non-durable analysis of a single page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..domain.errors import ScraperDomainError
from ..domain.models import ProviderName, SeoAnalysis
from ..observability.logger import get_logger
from ..scraping.providers import ProviderRegistry
from ..utils.validators import coerce_http_url
from .seo_analysis import SeoAnalyzer

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuickAnalysisResult:
    success: bool
    provider: ProviderName
    website_url: str
    data: Optional[SeoAnalysis] = None
    error: Optional[str] = None


class QuickAnalysisService:
    """Scrape one URL and run single-page analysis on it.

    Scrape and analysis failures come back as an unsuccessful result rather
    than an exception; nothing is persisted.
    """

    def __init__(self, *, providers: ProviderRegistry, analyzer: SeoAnalyzer):
        self._providers = providers
        self._analyzer = analyzer

    async def analyze_url(self, url: str, provider: ProviderName) -> QuickAnalysisResult:
        target = coerce_http_url(url)
        scraper = self._providers[provider]

        scraped = await scraper.scrape_one(target)
        if not scraped.success or not scraped.content:
            logger.info("quick_analysis_scrape_failed", url=target, provider=provider.value, error=scraped.error)
            return QuickAnalysisResult(
                success=False,
                provider=provider,
                website_url=url,
                error=scraped.error or "Failed to scrape website",
            )

        try:
            analysis = await self._analyzer.analyze(scraped.content)
        except ScraperDomainError as e:
            logger.info("quick_analysis_failed", url=target, provider=provider.value, error=str(e))
            return QuickAnalysisResult(
                success=False,
                provider=provider,
                website_url=url,
                error=str(e) or "AI analysis failed",
            )

        return QuickAnalysisResult(success=True, provider=provider, website_url=url, data=analysis.data)
