"""Read-only status reporting for workflow runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..domain.models import CrawlWorkflowResult, RunStatus, StepRecord, StepStatus, WorkflowRun
from ..storage.repositories import RunRepository

_STEP_LABELS = (
    ("discover", "discovering"),
    ("scrape", "scraping"),
    ("aggregate", "aggregating"),
    ("analyze", "analyzing"),
)


@dataclass(frozen=True)
class CrawlStatus:
    run_id: str
    status: str
    current_step: str
    result: Optional[CrawlWorkflowResult] = None
    error: Optional[str] = None


def map_step_name(name: str) -> str:
    for fragment, label in _STEP_LABELS:
        if fragment in name:
            return label
    return "processing"


def current_step_label(status: RunStatus, steps: list[StepRecord]) -> str:
    if status.is_terminal:
        return status.value
    if status == RunStatus.UNKNOWN:
        return "processing"

    ordered = sorted(steps, key=lambda s: s.ordinal)
    for step in ordered:
        if step.status == StepStatus.RUNNING:
            return map_step_name(step.name.value)

    last_completed = None
    for index, step in enumerate(ordered):
        if step.status == StepStatus.COMPLETED:
            last_completed = index
    if last_completed is not None and last_completed < len(ordered) - 1:
        return map_step_name(ordered[last_completed + 1].name.value)
    return "processing"


def build_status(run: WorkflowRun) -> CrawlStatus:
    result = None
    error = None
    if run.status in (RunStatus.COMPLETED, RunStatus.FAILED):
        result = run.result
    if run.status == RunStatus.FAILED:
        error = run.error or (run.result.error if run.result else None) or "Workflow failed"
    return CrawlStatus(
        run_id=run.run_id,
        status=run.status.value,
        current_step=current_step_label(run.status, run.steps),
        result=result,
        error=error,
    )


class CrawlStatusService:
    def __init__(self, *, runs: RunRepository):
        self._runs = runs

    async def get_status(self, run_id: str) -> Optional[CrawlStatus]:
        run = await self._runs.get_run(run_id)
        if run is None:
            return None
        return build_status(run)
