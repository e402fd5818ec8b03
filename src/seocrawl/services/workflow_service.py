"""Durable crawl workflow: discover -> scrape -> aggregate -> analyze.

Each run is a persisted state machine. Every step writes its output to the
run's step log before the next step starts, so a run interrupted by a crash or
shutdown is re-driven from the log and completed steps are never re-executed.

Error semantics per step:
- FatalStepError: step and run fail immediately, no retry.
- StepOutcome(success=False): step and run fail (short-circuit).
- Any other exception: retried with linear backoff, then treated like an
  unsuccessful outcome.

Errors outside a step handler (store writes) interrupt the run. It is re-driven
from the step log after a backoff until it settles; past the overall deadline
it is failed instead, so every run reaches a terminal status.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import structlog
from sqlalchemy.exc import SQLAlchemyError

from ..domain.errors import FatalStepError, RunNotFoundError, ScraperDomainError
from ..domain.models import (
    STEP_ORDER,
    AggregatedContent,
    BatchScrapeResult,
    CrawlParams,
    CrawlWorkflowResult,
    DiscoveryResult,
    RunStatus,
    SeoAnalysis,
    SeoAnalysisResult,
    StepName,
    StepStatus,
    WorkflowRun,
)
from ..observability.logger import get_logger
from ..scraping.providers import ProviderRegistry, ScrapingProvider
from ..storage.repositories import RunRepository, SeoSettingsRepository
from ..utils.time import current_time_ms, elapsed_ms, utcnow
from .aggregator import aggregate_content, aggregation_summary
from .discovery_service import UrlDiscoveryService
from .seo_analysis import SeoAnalyzer

logger = get_logger(__name__)

StepOutputs = dict[StepName, dict[str, Any]]


@dataclass(frozen=True)
class StepOutcome:
    success: bool
    output: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: dict[str, Any]) -> "StepOutcome":
        return cls(success=True, output=output)

    @classmethod
    def failed(cls, error: str) -> "StepOutcome":
        return cls(success=False, error=error)


def _count(outputs: StepOutputs, step: StepName, key: str) -> int:
    data = outputs.get(step) or {}
    return len(data.get(key) or [])


def _build_result(outputs: StepOutputs, *, error: str | None = None) -> CrawlWorkflowResult:
    analysis: SeoAnalysis | None = None
    if StepName.ANALYZE in outputs:
        analysis = SeoAnalysisResult.from_dict(outputs[StepName.ANALYZE]).data
    success = error is None and analysis is not None
    return CrawlWorkflowResult(
        success=success,
        pages_discovered=_count(outputs, StepName.DISCOVER, "urls"),
        pages_scraped=_count(outputs, StepName.SCRAPE, "pages"),
        # Pages only count as analyzed once the analysis itself succeeded.
        pages_analyzed=_count(outputs, StepName.AGGREGATE, "included_urls") if success else 0,
        analysis=analysis,
        error=error,
    )


def _completed_outputs(run: WorkflowRun) -> StepOutputs:
    return {
        s.name: s.output
        for s in run.steps
        if s.status == StepStatus.COMPLETED and s.output is not None
    }


def _scrape_failure_message(batch: BatchScrapeResult) -> str:
    if len(batch.errors) == 1:
        return batch.errors[0].error
    if batch.total_failed:
        return f"Scraping failed for {batch.total_failed} pages"
    return "No pages could be scraped"


class CrawlWorkflowService:
    def __init__(
        self,
        *,
        runs: RunRepository,
        discovery: UrlDiscoveryService,
        providers: ProviderRegistry,
        analyzer: SeoAnalyzer,
        max_aggregate_chars: int = 800_000,
        step_max_retries: int = 2,
        step_retry_backoff_ms: int = 500,
        max_duration_seconds: float = 300,
        seo_settings: SeoSettingsRepository | None = None,
    ):
        self._runs = runs
        self._discovery = discovery
        self._providers = providers
        self._analyzer = analyzer
        self._max_aggregate_chars = int(max_aggregate_chars)
        self._max_retries = max(0, int(step_max_retries))
        self._backoff_ms = max(0, int(step_retry_backoff_ms))
        self._max_duration = float(max_duration_seconds)
        self._seo_settings = seo_settings
        self._tasks: set[asyncio.Task] = set()

    async def start(self, params: CrawlParams, *, requested_by: str | None = None) -> str:
        """Persist a new run and schedule it; returns the run id immediately."""
        if params.provider not in self._providers:
            raise ValueError(f"provider not configured: {params.provider.value}")
        run_id = str(uuid.uuid4())
        await self._runs.create_run(run_id, params, requested_by=requested_by)
        self._schedule(run_id)
        logger.info(
            "workflow_run_started",
            run_id=run_id,
            client_id=params.client_id,
            root_url=params.root_url,
            provider=params.provider.value,
            max_pages=params.max_pages,
        )
        return run_id

    def _schedule(self, run_id: str) -> asyncio.Task:
        task = asyncio.create_task(self.run(run_id), name=f"crawl-run-{run_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def resume_incomplete_runs(self) -> int:
        """Re-drive every pending/running run from its step log."""
        run_ids = await self._runs.list_incomplete_run_ids()
        for run_id in run_ids:
            self._schedule(run_id)
        if run_ids:
            logger.info("workflow_runs_resumed", count=len(run_ids))
        return len(run_ids)

    async def join(self) -> None:
        """Wait until every scheduled run has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight runs; they stay ``running`` in the store and resume on next start."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("workflow_runs_suspended", count=len(tasks))

    async def run(self, run_id: str) -> CrawlWorkflowResult | None:
        run = await self._runs.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if not run.status.is_open:
            return run.result

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._max_duration
        with structlog.contextvars.bound_contextvars(run_id=run_id, client_id=run.client_id):
            start_ms = current_time_ms()
            interruptions = 0
            while True:
                try:
                    result = await self._drive(run_id, deadline)
                    break
                except RunNotFoundError:
                    raise
                except Exception as e:
                    # Store or infrastructure failure outside a step handler.
                    interruptions += 1
                    delay = min(max(self._backoff_ms, 100) * interruptions / 1000, 30.0)
                    remaining = deadline - loop.time()
                    if remaining > 0:
                        delay = min(delay, remaining)
                    logger.warning(
                        "workflow_run_interrupted",
                        interruptions=interruptions,
                        delay_ms=int(delay * 1000),
                        error=str(e) or type(e).__name__,
                    )
                    await asyncio.sleep(delay)
            logger.info(
                "workflow_run_finished",
                success=result.success,
                pages_discovered=result.pages_discovered,
                pages_scraped=result.pages_scraped,
                pages_analyzed=result.pages_analyzed,
                error=result.error,
                interruptions=interruptions,
                elapsed_ms=elapsed_ms(start_ms),
            )
            return result

    async def _drive(self, run_id: str, deadline: float) -> CrawlWorkflowResult:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining > 0:
            try:
                return await asyncio.wait_for(self._resume(run_id), timeout=remaining)
            except asyncio.TimeoutError:
                pass
        return await self._fail_on_timeout(run_id)

    async def _resume(self, run_id: str) -> CrawlWorkflowResult:
        run = await self._runs.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if not run.status.is_open:
            return run.result or _build_result(_completed_outputs(run), error=run.error)
        await self._runs.mark_running(run_id)
        return await self._execute(run)

    async def _execute(self, run: WorkflowRun) -> CrawlWorkflowResult:
        params = run.params
        provider = self._providers[params.provider]
        outputs: StepOutputs = {}

        handlers: dict[StepName, Callable[[], Awaitable[StepOutcome]]] = {
            StepName.DISCOVER: lambda: self._discover(params, provider),
            StepName.SCRAPE: lambda: self._scrape(params, provider, outputs),
            StepName.AGGREGATE: lambda: self._aggregate(outputs),
            StepName.ANALYZE: lambda: self._analyze(outputs),
        }

        for name in STEP_ORDER:
            record = run.step(name)
            if record is not None and record.status == StepStatus.COMPLETED and record.output is not None:
                outputs[name] = record.output
                logger.info("workflow_step_reused", step=name.value)
                continue

            try:
                outcome = await self._run_step(run.run_id, name, handlers[name])
            except FatalStepError as e:
                logger.warning("workflow_step_fatal", step=name.value, code=e.info.code, error=str(e))
                await self._runs.fail_step(run.run_id, name, str(e))
                return await self._finish_failed(run.run_id, outputs, str(e))

            if not outcome.success:
                error = outcome.error or f"{name.value} step failed"
                await self._runs.fail_step(run.run_id, name, error)
                return await self._finish_failed(run.run_id, outputs, error)

            await self._runs.complete_step(run.run_id, name, outcome.output or {})
            outputs[name] = outcome.output or {}

        result = _build_result(outputs)
        await self._runs.finish_run(run.run_id, RunStatus.COMPLETED, result=result)
        if self._seo_settings is not None and result.analysis is not None:
            await self._save_seo_settings(params, result.analysis)
        return result

    async def _run_step(
        self,
        run_id: str,
        name: StepName,
        handler: Callable[[], Awaitable[StepOutcome]],
    ) -> StepOutcome:
        attempt = 0
        while True:
            attempt += 1
            await self._runs.mark_step_running(run_id, name)
            start_ms = current_time_ms()
            try:
                outcome = await handler()
            except FatalStepError:
                raise
            except Exception as e:
                error = str(e) or type(e).__name__
                if attempt > self._max_retries:
                    logger.error("workflow_step_retries_exhausted", step=name.value, attempts=attempt, error=error)
                    return StepOutcome.failed(error)
                delay_ms = self._backoff_ms * attempt
                logger.warning(
                    "workflow_step_retrying",
                    step=name.value,
                    attempt=attempt,
                    delay_ms=delay_ms,
                    error=error,
                )
                await asyncio.sleep(delay_ms / 1000)
                continue

            logger.info(
                "workflow_step_completed" if outcome.success else "workflow_step_failed",
                step=name.value,
                attempt=attempt,
                error=outcome.error,
                elapsed_ms=elapsed_ms(start_ms),
            )
            return outcome

    async def _finish_failed(self, run_id: str, outputs: StepOutputs, error: str) -> CrawlWorkflowResult:
        result = _build_result(outputs, error=error)
        await self._runs.finish_run(run_id, RunStatus.FAILED, result=result, error=error)
        return result

    async def _fail_on_timeout(self, run_id: str) -> CrawlWorkflowResult:
        error = f"Workflow timed out after {self._max_duration:g}s"
        logger.error("workflow_run_timed_out", timeout_seconds=self._max_duration)
        run = await self._runs.get_run(run_id)
        outputs: StepOutputs = {}
        if run is not None:
            outputs = _completed_outputs(run)
            for step in run.steps:
                if step.status == StepStatus.RUNNING:
                    await self._runs.fail_step(run_id, step.name, error)
        return await self._finish_failed(run_id, outputs, error)

    # Step handlers

    async def _discover(self, params: CrawlParams, provider: ScrapingProvider) -> StepOutcome:
        if not provider.requires_discovery:
            # The provider crawls from the root itself.
            host = (urlparse(params.root_url).hostname or "").lower()
            return StepOutcome.ok(DiscoveryResult(urls=[params.root_url], root_domain=host).to_dict())
        try:
            discovered = await self._discovery.discover(params.root_url, params.max_pages)
        except FatalStepError:
            raise
        except ScraperDomainError as e:
            return StepOutcome.failed(str(e) or "URL discovery failed")
        return StepOutcome.ok(discovered.to_dict())

    async def _scrape(self, params: CrawlParams, provider: ScrapingProvider, outputs: StepOutputs) -> StepOutcome:
        urls = list(outputs[StepName.DISCOVER].get("urls") or [])
        batch = await provider.scrape_many(urls, max_pages=params.max_pages)
        if batch.is_total_failure:
            return StepOutcome.failed(_scrape_failure_message(batch))
        return StepOutcome.ok(batch.to_dict())

    async def _aggregate(self, outputs: StepOutputs) -> StepOutcome:
        batch = BatchScrapeResult.from_dict(outputs[StepName.SCRAPE])
        aggregated = aggregate_content(batch.pages, self._max_aggregate_chars)
        logger.info("content_aggregated", summary=aggregation_summary(aggregated))
        return StepOutcome.ok(aggregated.to_dict())

    async def _analyze(self, outputs: StepOutputs) -> StepOutcome:
        aggregated = AggregatedContent.from_dict(outputs[StepName.AGGREGATE])
        result = await self._analyzer.analyze(
            aggregated.content,
            multi_page=True,
            pages_analyzed=len(aggregated.included_urls),
        )
        return StepOutcome.ok(result.to_dict())

    async def _save_seo_settings(self, params: CrawlParams, analysis: SeoAnalysis) -> None:
        try:
            await self._seo_settings.upsert(
                params.client_id,
                website_url=params.root_url,
                target_keywords=list(analysis.keywords),
                target_locations=[analysis.location] if analysis.location else None,
                meta_title=analysis.meta_title,
                meta_description=analysis.meta_description,
                industry=analysis.industry.value,
                analyzed_at=utcnow(),
                analysis_provider=self._analyzer.provider,
            )
        except SQLAlchemyError as e:
            logger.error("seo_settings_save_failed", error=str(e))
        else:
            logger.info("seo_settings_saved")
