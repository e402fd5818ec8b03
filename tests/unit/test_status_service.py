from __future__ import annotations

import asyncio

from seocrawl.domain.models import (
    STEP_ORDER,
    CrawlParams,
    CrawlWorkflowResult,
    ProviderName,
    RunStatus,
    StepName,
    StepRecord,
    StepStatus,
    WorkflowRun,
)
from seocrawl.services.status_service import CrawlStatusService, build_status, map_step_name
from seocrawl.storage.database import Database
from seocrawl.storage.repositories import RunRepository

PARAMS = CrawlParams(root_url="https://example.com", client_id="client-1", provider=ProviderName.JINA, max_pages=5)


def _run(status: RunStatus, step_states: dict[StepName, StepStatus] | None = None, **kwargs) -> WorkflowRun:
    states = step_states or {}
    steps = [
        StepRecord(name=name, status=states.get(name, StepStatus.PENDING), ordinal=i)
        for i, name in enumerate(STEP_ORDER)
    ]
    return WorkflowRun(run_id="run-1", client_id="client-1", params=PARAMS, status=status, steps=steps, **kwargs)


def test_map_step_name() -> None:
    assert map_step_name("discover") == "discovering"
    assert map_step_name("discoverUrlsStep") == "discovering"
    assert map_step_name("scrape") == "scraping"
    assert map_step_name("aggregate") == "aggregating"
    assert map_step_name("analyze") == "analyzing"
    assert map_step_name("notify") == "processing"


def test_pending_run_with_no_started_steps_reports_fallback() -> None:
    status = build_status(_run(RunStatus.PENDING))
    assert status.status == "pending"
    assert status.current_step == "processing"
    assert status.result is None


def test_running_step_is_reported() -> None:
    status = build_status(
        _run(RunStatus.RUNNING, {StepName.DISCOVER: StepStatus.COMPLETED, StepName.SCRAPE: StepStatus.RUNNING})
    )
    assert status.current_step == "scraping"


def test_step_after_last_completed_is_reported_between_steps() -> None:
    status = build_status(
        _run(
            RunStatus.RUNNING,
            {
                StepName.DISCOVER: StepStatus.COMPLETED,
                StepName.SCRAPE: StepStatus.COMPLETED,
            },
        )
    )
    assert status.current_step == "aggregating"


def test_all_steps_completed_but_run_open_falls_back() -> None:
    status = build_status(_run(RunStatus.RUNNING, {name: StepStatus.COMPLETED for name in STEP_ORDER}))
    assert status.current_step == "processing"


def test_completed_run_reports_completed_with_result() -> None:
    result = CrawlWorkflowResult(success=True, pages_discovered=3, pages_scraped=3, pages_analyzed=2)
    status = build_status(_run(RunStatus.COMPLETED, {name: StepStatus.COMPLETED for name in STEP_ORDER}, result=result))
    assert status.current_step == "completed"
    assert status.result == result
    assert status.error is None


def test_failed_and_cancelled_runs() -> None:
    failed = build_status(_run(RunStatus.FAILED, {StepName.DISCOVER: StepStatus.FAILED}, error="No pages found on website"))
    assert failed.current_step == "failed"
    assert failed.error == "No pages found on website"

    generic = build_status(_run(RunStatus.FAILED))
    assert generic.error == "Workflow failed"

    cancelled = build_status(_run(RunStatus.CANCELLED, {StepName.DISCOVER: StepStatus.RUNNING}))
    assert cancelled.current_step == "cancelled"
    assert cancelled.result is None


def test_unrecognized_run_status_is_unknown() -> None:
    assert RunStatus.from_stored("paused") == RunStatus.UNKNOWN
    assert RunStatus.from_stored("running") == RunStatus.RUNNING

    status = build_status(_run(RunStatus.UNKNOWN, {StepName.SCRAPE: StepStatus.RUNNING}))
    assert status.status == "unknown"
    assert status.current_step == "processing"
    assert status.result is None
    assert status.error is None


def test_get_status_reads_from_store(tmp_path) -> None:
    async def scenario():
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'status.db'}")
        await db.init_db()
        runs = RunRepository(session_factory=db.session_factory)
        service = CrawlStatusService(runs=runs)
        await runs.create_run("run-9", PARAMS)
        pending = await service.get_status("run-9")
        missing = await service.get_status("does-not-exist")
        await db.close()
        return pending, missing

    pending, missing = asyncio.run(scenario())
    assert pending.status == "pending"
    assert pending.current_step == "processing"
    assert missing is None
