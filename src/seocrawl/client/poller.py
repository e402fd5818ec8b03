"""Client-side status poller for ``GET /crawl/{runId}``.

Polls every ``poll_interval_seconds`` (unless overridden) and hands every
snapshot to the caller. Transient failures (network errors, non-2xx, bad JSON)
are logged and polling goes on.
Stopping the poller only stops observation; the run itself is unaffected.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

from ..config.settings import get_settings
from ..domain.errors import ScraperDomainError
from ..observability.logger import get_logger
from ..scraping.http_fetcher import HttpFetcher

logger = get_logger(__name__)

Snapshot = dict[str, Any]
SnapshotCallback = Callable[[Snapshot], Union[None, Awaitable[None]]]

_TERMINAL = ("failed", "cancelled")


def is_final_snapshot(snapshot: Snapshot) -> bool:
    status = snapshot.get("status")
    if status == "completed":
        # A completed run without a result is still settling; keep polling.
        return snapshot.get("result") is not None
    return status in _TERMINAL


class CrawlStatusPoller:
    def __init__(
        self,
        *,
        base_url: str,
        run_id: str,
        fetcher: HttpFetcher,
        interval_seconds: float | None = None,
        headers: Optional[dict[str, str]] = None,
        on_update: Optional[SnapshotCallback] = None,
    ):
        self._url = f"{base_url.rstrip('/')}/crawl/{run_id}"
        self._run_id = run_id
        self._fetcher = fetcher
        if interval_seconds is None:
            interval_seconds = get_settings().poll_interval_seconds
        self.interval_seconds = float(interval_seconds)
        self._headers = dict(headers or {})
        self._on_update = on_update
        self._task: asyncio.Task | None = None
        self.last_snapshot: Snapshot | None = None

    async def poll_once(self) -> Optional[Snapshot]:
        try:
            resp = await self._fetcher.fetch(self._url, headers=self._headers)
            if not resp.ok:
                logger.info("crawl_status_poll_failed", run_id=self._run_id, status=resp.status)
                return None
            data = resp.json()
        except (ScraperDomainError, ValueError) as e:
            logger.info("crawl_status_poll_failed", run_id=self._run_id, error=str(e))
            return None
        if not isinstance(data, dict):
            return None

        self.last_snapshot = data
        if self._on_update is not None:
            maybe = self._on_update(data)
            if asyncio.iscoroutine(maybe):
                await maybe
        return data

    async def run(self) -> Optional[Snapshot]:
        """Poll until the run reaches a final state; returns the final snapshot."""
        while True:
            snapshot = await self.poll_once()
            if snapshot is not None and is_final_snapshot(snapshot):
                logger.info("crawl_status_poll_finished", run_id=self._run_id, status=snapshot.get("status"))
                return snapshot
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name=f"crawl-poller-{self._run_id}")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
