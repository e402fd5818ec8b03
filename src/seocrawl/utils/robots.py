"""robots.txt helpers.

Discovery only needs the ``Sitemap:`` directives; access rules are not
evaluated because the crawl stays on public marketing pages.
"""

from __future__ import annotations

from urllib.robotparser import RobotFileParser

from .validators import is_valid_http_url


def robots_url_for(root_url: str) -> str:
    return f"{root_url.rstrip('/')}/robots.txt"


def extract_sitemap_urls(robots_txt: str) -> list[str]:
    """Return absolute http(s) sitemap URLs declared in a robots.txt body, in file order."""
    parser = RobotFileParser()
    parser.parse(robots_txt.splitlines())
    declared = parser.site_maps() or []

    out: list[str] = []
    seen: set[str] = set()
    for raw in declared:
        u = raw.strip()
        if not u or u in seen or not is_valid_http_url(u):
            continue
        seen.add(u)
        out.append(u)
    return out
