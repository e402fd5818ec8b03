from __future__ import annotations

from seocrawl.utils.url_priority import DEFAULT_PRIORITY, get_url_priority, should_skip_url, sort_by_priority


def test_homepage_and_business_pages_rank_first() -> None:
    assert get_url_priority("https://example.com") == 0
    assert get_url_priority("https://example.com/") == 0
    assert get_url_priority("https://example.com/index.html") == 0
    assert get_url_priority("https://example.com/about") == 1
    assert get_url_priority("https://example.com/about-us/") == 1
    assert get_url_priority("https://example.com/services/drain-cleaning") == 2
    assert get_url_priority("https://example.com/contact") == 3
    assert get_url_priority("https://example.com/blog/post-1") == 10
    assert get_url_priority("https://example.com/random-page") == DEFAULT_PRIORITY


def test_prefix_match_does_not_leak_into_other_words() -> None:
    # "/aboutface" is not an about page.
    assert get_url_priority("https://example.com/aboutface") == DEFAULT_PRIORITY


def test_sort_is_stable_for_equal_priorities() -> None:
    urls = [
        "https://example.com/zeta",
        "https://example.com/blog/b",
        "https://example.com/alpha",
        "https://example.com/blog/a",
        "https://example.com/about",
        "https://example.com/",
    ]
    assert sort_by_priority(urls) == [
        "https://example.com/",
        "https://example.com/about",
        "https://example.com/blog/b",
        "https://example.com/blog/a",
        "https://example.com/zeta",
        "https://example.com/alpha",
    ]


def test_sort_does_not_mutate_input() -> None:
    urls = ["https://example.com/blog", "https://example.com/"]
    sort_by_priority(urls)
    assert urls == ["https://example.com/blog", "https://example.com/"]


def test_should_skip_assets_and_documents() -> None:
    assert should_skip_url("https://example.com/logo.PNG")
    assert should_skip_url("https://example.com/files/menu.pdf")
    assert should_skip_url("https://example.com/static/app.js")
    assert not should_skip_url("https://example.com/services")
    assert not should_skip_url("https://example.com/page.html")
