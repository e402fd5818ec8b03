"""Per-host request spacing for quota-limited upstreams.

The reader proxy's keyless tier allows a fixed number of requests per minute.
Every request through one limiter to the same host takes the next free slot,
so a burst from the scrape pool is spread evenly across the minute. Other
hosts never wait on each other.
"""

from __future__ import annotations

import asyncio
from urllib.parse import urlparse


class HostRateLimiter:
    """Spaces requests to a host ``60 / requests_per_minute`` seconds apart.

    A quota of 0 (or less) disables limiting.
    """

    def __init__(self, *, requests_per_minute: float):
        self.requests_per_minute = float(requests_per_minute)
        self._interval = 60.0 / self.requests_per_minute if self.requests_per_minute > 0 else 0.0
        self._next_slot: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def acquire(self, url: str) -> float:
        """Wait for the URL host's next slot; returns the seconds spent waiting."""
        if not self.enabled:
            return 0.0
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return 0.0

        async with self._locks.setdefault(host, asyncio.Lock()):
            loop = asyncio.get_running_loop()
            delay = max(0.0, self._next_slot.get(host, 0.0) - loop.time())
            if delay:
                await asyncio.sleep(delay)
            self._next_slot[host] = loop.time() + self._interval
            return delay
