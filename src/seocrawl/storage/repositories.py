"""Repository pattern for database access (workflow runs + SEO settings)."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..domain.errors import DatabaseError
from ..domain.models import (
    STEP_ORDER,
    CrawlParams,
    CrawlWorkflowResult,
    RunStatus,
    StepName,
    StepRecord,
    StepStatus,
    WorkflowRun,
)
from ..models.database import ClientSeoSettingsRecord, CrawlRunRecord, CrawlStepRecord
from ..observability.logger import get_logger
from ..utils.time import utcnow

logger = get_logger(__name__)

_OPEN_RUN_STATES = (RunStatus.PENDING.value, RunStatus.RUNNING.value)


def _dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False)


def _loads(blob: Optional[str]) -> Any:
    return json.loads(blob) if blob else None


def _step_to_domain(rec: CrawlStepRecord) -> StepRecord:
    return StepRecord(
        name=StepName(rec.name),
        status=StepStatus(rec.status),
        ordinal=rec.ordinal,
        output=_loads(rec.output_json),
        error=rec.error,
        attempts=rec.attempts,
    )


def _run_to_domain(rec: CrawlRunRecord, steps: list[CrawlStepRecord]) -> WorkflowRun:
    result = _loads(rec.result_json)
    status = RunStatus.from_stored(rec.status)
    if status == RunStatus.UNKNOWN:
        logger.warning("run_status_unrecognized", run_id=rec.run_id, status=rec.status)
    return WorkflowRun(
        run_id=rec.run_id,
        client_id=rec.client_id,
        params=CrawlParams.from_dict(json.loads(rec.params_json)),
        status=status,
        steps=[_step_to_domain(s) for s in sorted(steps, key=lambda s: s.ordinal)],
        result=CrawlWorkflowResult.from_dict(result) if result else None,
        error=rec.error,
        created_at=rec.created_at,
        updated_at=rec.updated_at,
    )


class RunRepository:
    """Repository for workflow runs and their step log.

    Status updates are guarded in the WHERE clause: a terminal run is never
    modified, and a running run never returns to pending.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def create_run(self, run_id: str, params: CrawlParams, requested_by: str | None = None) -> None:
        now = utcnow()
        try:
            async with self._session_factory() as session:
                session.add(
                    CrawlRunRecord(
                        run_id=run_id,
                        client_id=params.client_id,
                        requested_by=requested_by,
                        root_url=params.root_url,
                        params_json=_dumps(params.to_dict()),
                        status=RunStatus.PENDING.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                for ordinal, name in enumerate(STEP_ORDER):
                    session.add(
                        CrawlStepRecord(
                            run_id=run_id,
                            name=name.value,
                            ordinal=ordinal,
                            status=StepStatus.PENDING.value,
                            attempts=0,
                            updated_at=now,
                        )
                    )
                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError("failed_to_create_run", detail=str(e)) from e

    async def mark_running(self, run_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(CrawlRunRecord)
                .where(CrawlRunRecord.run_id == run_id, CrawlRunRecord.status == RunStatus.PENDING.value)
                .values(status=RunStatus.RUNNING.value, started_at=utcnow(), updated_at=utcnow())
            )
            await session.commit()
            return result.rowcount > 0

    async def finish_run(
        self,
        run_id: str,
        status: RunStatus,
        *,
        result: CrawlWorkflowResult | None = None,
        error: str | None = None,
    ) -> bool:
        """Move an open run to a terminal state. Returns False if it was already terminal."""
        if not status.is_terminal:
            raise ValueError(f"finish_run requires a terminal status, got {status.value}")
        async with self._session_factory() as session:
            res = await session.execute(
                update(CrawlRunRecord)
                .where(CrawlRunRecord.run_id == run_id, CrawlRunRecord.status.in_(_OPEN_RUN_STATES))
                .values(
                    status=status.value,
                    result_json=_dumps(result.to_dict()) if result else None,
                    error=error,
                    completed_at=utcnow(),
                    updated_at=utcnow(),
                )
            )
            await session.commit()
            changed = res.rowcount > 0
        if not changed:
            logger.warning("run_status_update_ignored", run_id=run_id, status=status.value)
        return changed

    async def mark_step_running(self, run_id: str, name: StepName) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CrawlStepRecord)
                .where(
                    CrawlStepRecord.run_id == run_id,
                    CrawlStepRecord.name == name.value,
                    CrawlStepRecord.status != StepStatus.COMPLETED.value,
                )
                .values(
                    status=StepStatus.RUNNING.value,
                    attempts=CrawlStepRecord.attempts + 1,
                    error=None,
                    started_at=utcnow(),
                    updated_at=utcnow(),
                )
            )
            await session.commit()

    async def complete_step(self, run_id: str, name: StepName, output: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CrawlStepRecord)
                .where(CrawlStepRecord.run_id == run_id, CrawlStepRecord.name == name.value)
                .values(
                    status=StepStatus.COMPLETED.value,
                    output_json=_dumps(output),
                    error=None,
                    completed_at=utcnow(),
                    updated_at=utcnow(),
                )
            )
            await session.commit()

    async def fail_step(self, run_id: str, name: StepName, error: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CrawlStepRecord)
                .where(
                    CrawlStepRecord.run_id == run_id,
                    CrawlStepRecord.name == name.value,
                    CrawlStepRecord.status != StepStatus.COMPLETED.value,
                )
                .values(status=StepStatus.FAILED.value, error=error, updated_at=utcnow())
            )
            await session.commit()

    async def get_run(self, run_id: str) -> Optional[WorkflowRun]:
        async with self._session_factory() as session:
            rec = (
                await session.execute(select(CrawlRunRecord).where(CrawlRunRecord.run_id == run_id))
            ).scalar_one_or_none()
            if rec is None:
                return None
            steps = (
                await session.execute(select(CrawlStepRecord).where(CrawlStepRecord.run_id == run_id))
            ).scalars().all()
            return _run_to_domain(rec, list(steps))

    async def list_incomplete_run_ids(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CrawlRunRecord.run_id)
                .where(CrawlRunRecord.status.in_(_OPEN_RUN_STATES))
                .order_by(CrawlRunRecord.created_at)
            )
            return list(result.scalars().all())


class SeoSettingsRepository:
    """Per-client SEO settings; ``upsert`` keeps stored values for fields passed as None."""

    _FIELDS = (
        "website_url",
        "target_keywords",
        "target_locations",
        "meta_title",
        "meta_description",
        "industry",
        "analyzed_at",
        "analysis_provider",
    )

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def upsert(
        self,
        client_id: str,
        *,
        website_url: str | None = None,
        target_keywords: list[str] | None = None,
        target_locations: list[str] | None = None,
        meta_title: str | None = None,
        meta_description: str | None = None,
        industry: str | None = None,
        analyzed_at: datetime | None = None,
        analysis_provider: str | None = None,
    ) -> ClientSeoSettingsRecord:
        incoming = {
            "website_url": website_url,
            "target_keywords": target_keywords,
            "target_locations": target_locations,
            "meta_title": meta_title,
            "meta_description": meta_description,
            "industry": industry,
            "analyzed_at": analyzed_at,
            "analysis_provider": analysis_provider,
        }
        async with self._session_factory() as session:
            rec = (
                await session.execute(
                    select(ClientSeoSettingsRecord).where(ClientSeoSettingsRecord.client_id == client_id)
                )
            ).scalar_one_or_none()
            now = utcnow()
            if rec is None:
                rec = ClientSeoSettingsRecord(client_id=client_id, created_at=now, updated_at=now, **incoming)
                session.add(rec)
            else:
                for name in self._FIELDS:
                    value = incoming[name]
                    if value is not None:
                        setattr(rec, name, value)
                rec.updated_at = now
            await session.commit()
            return rec

    async def get(self, client_id: str) -> Optional[ClientSeoSettingsRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ClientSeoSettingsRecord).where(ClientSeoSettingsRecord.client_id == client_id)
            )
            return result.scalar_one_or_none()
