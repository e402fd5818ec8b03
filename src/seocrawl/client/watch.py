"""Command-line watcher: follow a crawl run until it settles.

Usage:
    seo-crawl-watch <run_id> --user-id <id> [--base-url http://localhost:8000]
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

from ..config.settings import get_settings
from ..observability.logger import configure_logging
from ..scraping.http_fetcher import HttpFetcher
from .poller import CrawlStatusPoller, Snapshot


def _print_snapshot(snapshot: Snapshot) -> None:
    line = f"[{snapshot.get('status')}] {snapshot.get('currentStep')}"
    if snapshot.get("error"):
        line += f" - {snapshot['error']}"
    print(line, flush=True)


async def watch_run(
    base_url: str,
    run_id: str,
    *,
    user_id: str,
    fetcher: Optional[HttpFetcher] = None,
    interval_seconds: float | None = None,
) -> Optional[Snapshot]:
    settings = get_settings()
    headers = {"X-User-Id": user_id}
    if settings.internal_api_key:
        headers["X-Gateway-Key"] = settings.internal_api_key
    poller = CrawlStatusPoller(
        base_url=base_url,
        run_id=run_id,
        fetcher=fetcher or HttpFetcher(timeout_seconds=10, user_agent=settings.discovery_user_agent),
        interval_seconds=interval_seconds,
        headers=headers,
        on_update=_print_snapshot,
    )
    return await poller.run()


async def main(argv: list[str] | None = None) -> int:
    import argparse

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Follow a crawl run until it completes or fails")
    parser.add_argument("run_id")
    parser.add_argument("--user-id", required=True, help="Forwarded as X-User-Id")
    parser.add_argument("--base-url", default=f"http://localhost:{settings.http_port}")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    args = parser.parse_args(argv)

    final = await watch_run(args.base_url, args.run_id, user_id=args.user_id, interval_seconds=args.interval)
    if final is None:
        return 1
    print(json.dumps(final, indent=2))
    return 0 if final.get("status") == "completed" else 1


def run() -> None:
    configure_logging()
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nStopped watching.")
        sys.exit(130)


if __name__ == "__main__":
    run()
