"""Content aggregation under a character budget."""

from __future__ import annotations

import math

from ..domain.models import AggregatedContent, PageContent


def format_page_section(page: PageContent) -> str:
    return f"\n\n--- PAGE: {page.url} ---\n\n{page.content.strip()}"


def aggregate_content(pages: list[PageContent], max_chars: int) -> AggregatedContent:
    """Greedily pack pages, in input order, into at most ``max_chars`` characters.

    Pages are expected in priority order. A page that does not fit is excluded
    and packing continues with the next one; excluded pages are never retried.
    Empty or whitespace-only pages are skipped and appear in neither list.
    """
    aggregated = ""
    included: list[str] = []
    excluded: list[str] = []

    for page in pages:
        if not page.content or not page.content.strip():
            continue

        section = format_page_section(page)
        if len(aggregated) + len(section) <= max_chars:
            aggregated += section
            included.append(page.url)
        else:
            excluded.append(page.url)

    return AggregatedContent(
        content=aggregated.strip(),
        included_urls=included,
        excluded_urls=excluded,
        total_chars=len(aggregated),
    )


def estimate_tokens(chars: int) -> int:
    """Rough approximation: 1 token is about 4 characters of English text."""
    return math.ceil(chars / 4)


def aggregation_summary(result: AggregatedContent) -> str:
    tokens = estimate_tokens(result.total_chars)
    return (
        f"Aggregated {len(result.included_urls)} pages ({result.total_chars:,} chars, ~{tokens:,} tokens). "
        f"{len(result.excluded_urls)} pages excluded due to size limit."
    )
