from __future__ import annotations

import asyncio

import pytest

from seocrawl.client.poller import CrawlStatusPoller, is_final_snapshot
from seocrawl.client.watch import main as watch_main
from seocrawl.client.watch import watch_run
from seocrawl.config.settings import reset_settings
from seocrawl.domain.errors import NetworkTimeoutError

from fakes import FakeFetcher, json_response, text_response

BASE = "http://localhost:8000"
STATUS_URL = f"{BASE}/crawl/run-1"


def _poller(fetcher: FakeFetcher, updates: list) -> CrawlStatusPoller:
    return CrawlStatusPoller(
        base_url=BASE + "/",
        run_id="run-1",
        fetcher=fetcher,
        interval_seconds=0,
        headers={"X-User-Id": "user-1"},
        on_update=updates.append,
    )


def test_is_final_snapshot() -> None:
    assert is_final_snapshot({"status": "completed", "result": {"success": True}})
    assert not is_final_snapshot({"status": "completed"})
    assert is_final_snapshot({"status": "failed"})
    assert is_final_snapshot({"status": "cancelled"})
    assert not is_final_snapshot({"status": "running", "currentStep": "scraping"})


def test_polls_through_transient_errors_until_completed() -> None:
    fetcher = FakeFetcher(
        {
            STATUS_URL: [
                json_response({"status": "pending", "currentStep": "processing"}),
                NetworkTimeoutError("Request failed: GET"),
                text_response("upstream down", status=502),
                text_response("<html>not json</html>"),
                json_response({"status": "running", "currentStep": "scraping"}),
                json_response({"status": "completed", "currentStep": "completed", "result": {"success": True}}),
            ]
        }
    )
    updates: list = []
    final = asyncio.run(_poller(fetcher, updates).run())

    assert final["status"] == "completed"
    assert [u["currentStep"] for u in updates] == ["processing", "scraping", "completed"]
    assert len(fetcher.calls) == 6


def test_stops_on_failed_run() -> None:
    fetcher = FakeFetcher({STATUS_URL: json_response({"status": "failed", "error": "No pages found on website"})})
    updates: list = []
    final = asyncio.run(_poller(fetcher, updates).run())
    assert final["error"] == "No pages found on website"
    assert len(fetcher.calls) == 1


def test_async_callback_and_cancellation() -> None:
    seen: list = []

    async def on_update(snapshot):
        seen.append(snapshot["status"])

    async def scenario():
        fetcher = FakeFetcher({STATUS_URL: json_response({"status": "running", "currentStep": "analyzing"})})
        poller = CrawlStatusPoller(
            base_url=BASE,
            run_id="run-1",
            fetcher=fetcher,
            interval_seconds=0.01,
            on_update=on_update,
        )
        task = poller.start()
        await asyncio.sleep(0.05)
        await poller.stop()
        return task, poller

    task, poller = asyncio.run(scenario())
    assert task.cancelled()
    assert seen and set(seen) == {"running"}
    assert poller.last_snapshot["currentStep"] == "analyzing"


def test_interval_defaults_to_poll_interval_setting(monkeypatch) -> None:
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "0.25")
    reset_settings()
    try:
        poller = CrawlStatusPoller(base_url=BASE, run_id="run-1", fetcher=FakeFetcher())
        explicit = CrawlStatusPoller(base_url=BASE, run_id="run-1", fetcher=FakeFetcher(), interval_seconds=0)
    finally:
        reset_settings()
    assert poller.interval_seconds == 0.25
    assert explicit.interval_seconds == 0


def test_watch_run_prints_progress_until_final(capsys, monkeypatch) -> None:
    monkeypatch.setenv("INTERNAL_API_KEY", "secret")
    reset_settings()
    fetcher = FakeFetcher(
        {
            STATUS_URL: [
                json_response({"status": "running", "currentStep": "scraping"}),
                json_response({"status": "failed", "currentStep": "failed", "error": "No pages found on website"}),
            ]
        }
    )
    try:
        final = asyncio.run(watch_run(BASE, "run-1", user_id="user-1", fetcher=fetcher, interval_seconds=0))
    finally:
        reset_settings()

    assert final["status"] == "failed"
    assert fetcher.sent_headers[0] == {"X-User-Id": "user-1", "X-Gateway-Key": "secret"}
    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("[")]
    assert lines == ["[running] scraping", "[failed] failed - No pages found on website"]


def test_watch_cli_requires_run_id_and_user() -> None:
    with pytest.raises(SystemExit) as exc_info:
        asyncio.run(watch_main(["run-1"]))
    assert exc_info.value.code == 2
