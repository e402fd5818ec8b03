from __future__ import annotations

from seocrawl.domain.models import PageContent
from seocrawl.services.aggregator import aggregate_content, aggregation_summary, estimate_tokens, format_page_section


def _page(path: str, size: int) -> PageContent:
    return PageContent(url=f"https://example.com{path}", content="x" * size)


def test_sections_are_delimited_by_page_url() -> None:
    result = aggregate_content([PageContent(url="https://example.com/", content="  Hello  ")], max_chars=1000)
    assert result.content == "--- PAGE: https://example.com/ ---\n\nHello"
    assert result.included_urls == ["https://example.com/"]


def test_budget_is_never_exceeded_and_urls_are_partitioned() -> None:
    pages = [_page("/", 300), _page("/about", 300), _page("/services", 300), _page("/contact", 50)]
    budget = 800
    result = aggregate_content(pages, max_chars=budget)

    assert result.total_chars <= budget
    assert len(result.content) <= budget
    assert set(result.included_urls).isdisjoint(result.excluded_urls)
    assert len(result.included_urls) + len(result.excluded_urls) == len(pages)
    # Greedy packing skips the page that does not fit and keeps going.
    assert result.included_urls == ["https://example.com/", "https://example.com/about", "https://example.com/contact"]
    assert result.excluded_urls == ["https://example.com/services"]


def test_included_urls_keep_input_order() -> None:
    pages = [_page("/c", 10), _page("/a", 10), _page("/b", 10)]
    result = aggregate_content(pages, max_chars=10_000)
    assert result.included_urls == [p.url for p in pages]


def test_blank_pages_are_ignored_entirely() -> None:
    pages = [PageContent(url="https://example.com/blank", content="  \n "), _page("/", 20)]
    result = aggregate_content(pages, max_chars=10_000)
    assert result.included_urls == ["https://example.com/"]
    assert result.excluded_urls == []


def test_total_chars_counts_delimiters() -> None:
    page = _page("/", 100)
    result = aggregate_content([page], max_chars=10_000)
    assert result.total_chars == len(format_page_section(page))


def test_oversized_single_page_is_excluded() -> None:
    result = aggregate_content([_page("/", 2_000)], max_chars=1_000)
    assert result.included_urls == []
    assert result.content == ""


def test_summary_and_token_estimate() -> None:
    assert estimate_tokens(0) == 0
    assert estimate_tokens(401) == 101
    result = aggregate_content([_page("/", 100)], max_chars=10_000)
    assert aggregation_summary(result).startswith("Aggregated 1 pages")
