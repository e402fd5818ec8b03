from __future__ import annotations

import asyncio

from seocrawl.domain.errors import NetworkTimeoutError
from seocrawl.domain.models import BatchScrapeResult, PageContent, UrlError
from seocrawl.scraping.firecrawl_provider import FirecrawlProvider
from seocrawl.scraping.jina_provider import JinaReaderProvider

from fakes import FakeFetcher, json_response, text_response

JINA = "https://r.jina.ai"
FIRECRAWL = "https://api.firecrawl.dev"


def _jina(fetcher, **kwargs) -> JinaReaderProvider:
    return JinaReaderProvider(fetcher=fetcher, base_url=JINA, **kwargs)


def _firecrawl(fetcher, api_key: str | None = "fc-key", max_polls: int = 5) -> FirecrawlProvider:
    return FirecrawlProvider(
        fetcher=fetcher,
        base_url=FIRECRAWL,
        api_key=api_key,
        poll_interval_seconds=0,
        max_polls=max_polls,
    )


def test_jina_scrape_one_success_and_failures() -> None:
    fetcher = FakeFetcher(
        {
            f"{JINA}/https://example.com/": text_response("# Welcome\nWe fix pipes."),
            f"{JINA}/https://example.com/empty": text_response("   "),
            f"{JINA}/https://example.com/down": text_response("oops", status=503),
            f"{JINA}/https://example.com/slow": NetworkTimeoutError("Request failed: GET"),
        }
    )
    provider = _jina(fetcher)

    ok = asyncio.run(provider.scrape_one("https://example.com/"))
    assert ok.success and ok.content == "# Welcome\nWe fix pipes."

    assert asyncio.run(provider.scrape_one("https://example.com/empty")).error == "No content extracted from website"
    assert asyncio.run(provider.scrape_one("https://example.com/down")).error == "Jina Reader failed: 503"
    assert asyncio.run(provider.scrape_one("https://example.com/slow")).error == "Request failed: GET"
    assert asyncio.run(provider.scrape_one("not-a-url")).error == "Invalid URL format"


def test_jina_sends_api_key_when_configured() -> None:
    seen = {}

    class RecordingFetcher(FakeFetcher):
        async def fetch(self, url, *, method="GET", headers=None, json_body=None, timeout_seconds=None):
            seen.update(headers or {})
            return text_response("content")

    asyncio.run(_jina(RecordingFetcher(), api_key="jina-key").scrape_one("https://example.com/"))
    assert seen["Authorization"] == "Bearer jina-key"
    assert seen["Accept"] == "text/plain"


def test_jina_batch_keeps_input_order_despite_completion_order() -> None:
    delays = {"https://example.com/": 0.03, "https://example.com/about": 0.0, "https://example.com/contact": 0.01}

    class SlowFetcher(FakeFetcher):
        async def fetch(self, url, *, method="GET", headers=None, json_body=None, timeout_seconds=None):
            target = url[len(JINA) + 1 :]
            await asyncio.sleep(delays[target])
            return text_response(f"content of {target}")

    urls = list(delays)
    result = asyncio.run(_jina(SlowFetcher(), concurrency=3).scrape_many(urls, max_pages=10))
    assert [p.url for p in result.pages] == urls
    assert result.total_scraped == 3 and result.total_failed == 0


def test_jina_batch_times_out_slow_pages_and_continues() -> None:
    class HangingFetcher(FakeFetcher):
        async def fetch(self, url, *, method="GET", headers=None, json_body=None, timeout_seconds=None):
            if url.endswith("/hang"):
                await asyncio.sleep(5)
            return text_response("fine")

    provider = _jina(HangingFetcher(), page_timeout_seconds=0.05)
    result = asyncio.run(provider.scrape_many(["https://example.com/", "https://example.com/hang"], max_pages=10))
    assert [p.url for p in result.pages] == ["https://example.com/"]
    assert result.errors[0].url == "https://example.com/hang"
    assert result.errors[0].error.startswith("Timed out")


def test_jina_batch_respects_page_cap() -> None:
    fetcher = FakeFetcher()
    for i in range(5):
        fetcher.routes[f"{JINA}/https://example.com/p{i}"] = text_response("x")
    urls = [f"https://example.com/p{i}" for i in range(5)]
    result = asyncio.run(_jina(fetcher).scrape_many(urls, max_pages=2))
    assert result.total_scraped == 2
    assert len(fetcher.calls) == 2


def test_batch_failure_boundary() -> None:
    def batch(scraped: int, failed: int) -> BatchScrapeResult:
        return BatchScrapeResult(
            pages=[PageContent(url=f"u{i}", content="x") for i in range(scraped)],
            errors=[UrlError(url=f"e{i}", error="boom") for i in range(failed)],
            total_scraped=scraped,
            total_failed=failed,
        )

    assert batch(0, 3).is_total_failure
    assert batch(0, 0).is_total_failure
    # Any successful page lets the run proceed, even at a 90% failure rate.
    assert not batch(1, 9).is_total_failure
    assert not batch(3, 0).is_total_failure


def test_firecrawl_scrape_one() -> None:
    fetcher = FakeFetcher(
        {("POST", f"{FIRECRAWL}/v1/scrape"): json_response({"success": True, "data": {"markdown": "# Hi"}})}
    )
    result = asyncio.run(_firecrawl(fetcher).scrape_one("https://example.com/"))
    assert result.success and result.content == "# Hi"
    assert fetcher.calls[0][2] == {"url": "https://example.com/", "formats": ["markdown"]}


def test_firecrawl_without_key_fails_without_network() -> None:
    fetcher = FakeFetcher()
    provider = _firecrawl(fetcher, api_key=None)
    assert asyncio.run(provider.scrape_one("https://example.com/")).error == "FIRECRAWL_API_KEY not configured"
    batch = asyncio.run(provider.scrape_many(["https://example.com"], max_pages=5))
    assert batch.is_total_failure
    assert fetcher.calls == []


def test_firecrawl_crawl_polls_until_completed_and_ranks_pages() -> None:
    fetcher = FakeFetcher(
        {
            ("POST", f"{FIRECRAWL}/v1/crawl"): json_response({"success": True, "id": "job-1"}),
            f"{FIRECRAWL}/v1/crawl/job-1": [
                json_response({"status": "scraping"}),
                text_response("bad gateway", status=502),
                json_response(
                    {
                        "status": "completed",
                        "data": [
                            {"markdown": "blog body", "metadata": {"sourceURL": "https://example.com/blog/x"}},
                            {"markdown": "", "metadata": {"sourceURL": "https://example.com/empty"}},
                            {"markdown": "home body", "metadata": {"sourceURL": "https://example.com/"}},
                        ],
                    }
                ),
            ],
        }
    )
    result = asyncio.run(_firecrawl(fetcher).scrape_many(["https://example.com"], max_pages=7))
    assert [p.url for p in result.pages] == ["https://example.com/", "https://example.com/blog/x"]
    assert result.total_scraped == 2 and not result.is_total_failure
    assert fetcher.calls[0][2]["limit"] == 7


def test_firecrawl_crawl_failed_and_timed_out() -> None:
    failed = FakeFetcher(
        {
            ("POST", f"{FIRECRAWL}/v1/crawl"): json_response({"id": "job-2"}),
            f"{FIRECRAWL}/v1/crawl/job-2": json_response({"status": "failed", "error": "blocked"}),
        }
    )
    result = asyncio.run(_firecrawl(failed).scrape_many(["https://example.com"], max_pages=3))
    assert result.is_total_failure and result.errors[0].error == "blocked"

    stuck = FakeFetcher(
        {
            ("POST", f"{FIRECRAWL}/v1/crawl"): json_response({"id": "job-3"}),
            f"{FIRECRAWL}/v1/crawl/job-3": json_response({"status": "scraping"}),
        }
    )
    result = asyncio.run(_firecrawl(stuck, max_polls=3).scrape_many(["https://example.com"], max_pages=3))
    assert result.errors[0].error == "Crawl timed out after 3 polls"
