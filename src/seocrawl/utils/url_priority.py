"""Page ranking and non-page filtering for candidate URLs."""

from __future__ import annotations

import re
from urllib.parse import urlparse

SKIP_EXTENSIONS: tuple[str, ...] = (
    # images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp", ".tif", ".tiff", ".avif",
    # documents / data
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".csv", ".json", ".xml", ".txt", ".rss",
    # archives
    ".zip", ".rar", ".7z", ".tar", ".gz", ".tgz", ".bz2",
    # assets
    ".css", ".js", ".mjs", ".map", ".woff", ".woff2", ".ttf", ".eot", ".otf",
    # media
    ".mp3", ".mp4", ".wav", ".avi", ".mov", ".webm", ".ogg", ".m4a",
    # binaries
    ".exe", ".dmg", ".apk", ".bin",
)

# Ordered: the first matching pattern decides the priority (lower = more important).
PAGE_PRIORITY_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"^/?$|^/(index|home)(\.(html?|php))?/?$", re.I), 0),
    (re.compile(r"^/(about|about-us|who-we-are|our-story|company)(/|$|[-_.])", re.I), 1),
    (re.compile(r"^/(services?|our-services|solutions|what-we-do|products?)(/|$|[-_.])", re.I), 2),
    (re.compile(r"^/(contact|contact-us|locations?|find-us|get-in-touch)(/|$|[-_.])", re.I), 3),
    (re.compile(r"^/(pricing|prices|plans|rates|packages)(/|$|[-_.])", re.I), 4),
    (re.compile(r"^/(team|our-team|staff|people|meet-the-team|leadership)(/|$|[-_.])", re.I), 5),
    (re.compile(r"^/(faqs?|help|questions)(/|$|[-_.])", re.I), 6),
    (re.compile(r"^/(testimonials|reviews)(/|$|[-_.])", re.I), 7),
    (re.compile(r"^/(portfolio|projects|gallery|our-work|work|case-studies)(/|$|[-_.])", re.I), 8),
    (re.compile(r"^/(blog|news|articles|posts|insights|press)(/|$|[-_.])", re.I), 10),
)
DEFAULT_PRIORITY = 100


def get_url_priority(url: str) -> int:
    """Priority score for a URL based on its path (homepage = 0, unmatched = 100)."""
    try:
        path = urlparse(url).path or "/"
    except ValueError:
        return DEFAULT_PRIORITY
    for pattern, priority in PAGE_PRIORITY_PATTERNS:
        if pattern.search(path):
            return priority
    return DEFAULT_PRIORITY


def sort_by_priority(urls: list[str]) -> list[str]:
    # sorted() is stable: ties keep discovery order.
    return sorted(urls, key=get_url_priority)


def should_skip_url(url: str) -> bool:
    try:
        path = (urlparse(url).path or "").lower()
    except ValueError:
        return True
    return path.endswith(SKIP_EXTENSIONS)
