"""Application lifespan management (startup/shutdown hooks)."""

from __future__ import annotations

from contextlib import asynccontextmanager

from .config.settings import ScraperSettings, get_settings
from .domain.models import ProviderName
from .http_app import app_state
from .llm.gemini_adapter import GeminiAdapter
from .llm.openai_adapter import OpenAIAdapter
from .llm.runtime import LLMRuntime
from .observability.logger import configure_logging, get_logger
from .scraping.firecrawl_provider import FirecrawlProvider
from .scraping.http_fetcher import HttpFetcher
from .scraping.jina_provider import JinaReaderProvider
from .scraping.providers import ScrapingProvider
from .services.discovery_service import UrlDiscoveryService
from .services.quick_analysis import QuickAnalysisService
from .services.seo_analysis import SeoAnalyzer
from .services.status_service import CrawlStatusService
from .services.workflow_service import CrawlWorkflowService
from .storage.database import close_db, get_database
from .storage.repositories import RunRepository, SeoSettingsRepository
from .utils.rate_limiter import HostRateLimiter

logger = get_logger(__name__)


def build_llm_runtime(settings: ScraperSettings, fetcher: HttpFetcher) -> tuple[LLMRuntime, str]:
    """Return the configured runtime and its default model."""
    if settings.llm_provider == "openai":
        return (
            OpenAIAdapter(api_key=settings.openai_api_key, base_url=settings.openai_base_url),
            settings.openai_default_model,
        )
    return (
        GeminiAdapter(fetcher=fetcher, api_key=settings.gemini_api_key, base_url=settings.gemini_base_url),
        settings.gemini_default_model,
    )


def build_providers(settings: ScraperSettings) -> dict[ProviderName, ScrapingProvider]:
    # Without an API key the reader proxy allows only a few requests per minute.
    jina_limiter = None
    if not settings.jina_api_key:
        jina_limiter = HostRateLimiter(requests_per_minute=settings.jina_requests_per_minute_without_key)
        logger.info(
            "jina_rate_limiter_enabled",
            requests_per_minute=settings.jina_requests_per_minute_without_key,
        )
    jina_fetcher = HttpFetcher(
        timeout_seconds=settings.scrape_page_timeout_seconds,
        user_agent=settings.discovery_user_agent,
        rate_limiter=jina_limiter,
    )
    firecrawl_fetcher = HttpFetcher(
        timeout_seconds=settings.firecrawl_timeout_seconds,
        user_agent=settings.discovery_user_agent,
    )
    if not settings.firecrawl_api_key:
        logger.warning("firecrawl_api_key_missing")

    return {
        ProviderName.JINA: JinaReaderProvider(
            fetcher=jina_fetcher,
            base_url=settings.jina_base_url,
            api_key=settings.jina_api_key,
            concurrency=settings.scrape_concurrency,
            page_timeout_seconds=settings.scrape_page_timeout_seconds,
        ),
        ProviderName.FIRECRAWL: FirecrawlProvider(
            fetcher=firecrawl_fetcher,
            base_url=settings.firecrawl_base_url,
            api_key=settings.firecrawl_api_key,
            poll_interval_seconds=settings.firecrawl_poll_interval_seconds,
            max_polls=settings.firecrawl_max_polls,
        ),
    }


def build_analyzer(settings: ScraperSettings, llm: LLMRuntime, model: str) -> SeoAnalyzer:
    return SeoAnalyzer(
        llm=llm,
        model=model,
        min_content_length=settings.min_content_length,
        max_content_length=settings.max_content_length,
        max_multi_page_chars=settings.analysis_max_content_chars,
        max_keywords=settings.max_keywords,
        temperature=settings.llm_temperature_default,
        max_tokens=settings.llm_max_tokens_cap,
        timeout_seconds=settings.llm_timeout_seconds_cap,
    )


@asynccontextmanager
async def lifespan_manager():
    """Manage application lifespan (startup and shutdown)."""
    settings = get_settings()

    configure_logging()
    logger.info("starting_application", service_name=settings.service_name)

    database = get_database()
    await database.init_db()
    logger.info("database_initialized")

    # Build layer dependencies (strict separation)
    discovery_fetcher = HttpFetcher(
        timeout_seconds=settings.discovery_timeout_seconds,
        user_agent=settings.discovery_user_agent,
    )
    llm_fetcher = HttpFetcher(
        timeout_seconds=settings.llm_timeout_seconds_cap,
        user_agent=settings.discovery_user_agent,
    )
    llm, model = build_llm_runtime(settings, llm_fetcher)
    logger.info("llm_runtime_configured", provider=llm.provider, model=model)

    providers = build_providers(settings)
    analyzer = build_analyzer(settings, llm, model)

    # Persistence repositories (created with a long-lived session factory; sessions per operation)
    runs = RunRepository(session_factory=database.session_factory)
    seo_settings = SeoSettingsRepository(session_factory=database.session_factory)

    workflow = CrawlWorkflowService(
        runs=runs,
        discovery=UrlDiscoveryService(fetcher=discovery_fetcher),
        providers=providers,
        analyzer=analyzer,
        max_aggregate_chars=settings.max_aggregate_chars,
        step_max_retries=settings.step_max_retries,
        step_retry_backoff_ms=settings.step_retry_backoff_ms,
        max_duration_seconds=settings.workflow_max_duration_seconds,
        seo_settings=seo_settings if settings.auto_save_seo_settings else None,
    )
    app_state["workflow_service"] = workflow
    app_state["status_service"] = CrawlStatusService(runs=runs)
    app_state["quick_analysis_service"] = QuickAnalysisService(providers=providers, analyzer=analyzer)

    if settings.resume_incomplete_runs_on_startup:
        await workflow.resume_incomplete_runs()

    logger.info("application_started")
    try:
        yield
    finally:
        await workflow.shutdown()
        app_state.clear()
        await close_db()
        logger.info("application_shutdown_complete")
