"""Thin aiohttp wrapper shared by discovery and the scraping providers."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from ..domain.errors import NetworkTimeoutError
from ..utils.rate_limiter import HostRateLimiter


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text)


class HttpFetcher:
    """Fetch layer.

    Responsibilities:
    - Perform one HTTP request with a total timeout
    - Wait for a per-host slot when a rate limiter is attached
    - Return status + body (no parsing, no retries)

    Transport failures raise NetworkTimeoutError; HTTP error statuses are
    returned to the caller, which decides whether they are fatal.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float,
        user_agent: str,
        rate_limiter: HostRateLimiter | None = None,
    ):
        self._timeout = float(timeout_seconds)
        self._user_agent = user_agent
        self._rate_limiter = rate_limiter

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        json_body: Any = None,
        timeout_seconds: float | None = None,
    ) -> HttpResponse:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire(url)

        merged = {"User-Agent": self._user_agent}
        if headers:
            merged.update(headers)

        timeout = aiohttp.ClientTimeout(total=timeout_seconds or self._timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=merged, json=json_body) as resp:
                    text = await resp.text(errors="ignore")
                    return HttpResponse(status=resp.status, text=text, url=str(resp.url))
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            raise NetworkTimeoutError(f"Request failed: {method} {url}", detail=str(e)) from e
