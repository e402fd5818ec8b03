"""URL discovery service (business logic).

Responsibilities:
- Normalize the requested URL to its scheme+host root
- Collect candidate page URLs through an ordered fallback chain:
  sitemap.xml -> robots.txt sitemaps -> homepage links
- Keep same-host HTML pages only, deduplicate, rank by business importance
- Cap the result at the requested page budget

Network and parse failures inside a strategy are non-fatal: they are logged,
recorded on the result and treated as "zero URLs". Only an empty final list
is escalated (NoPagesDiscoveredError).
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from ..domain.errors import NoPagesDiscoveredError, ScraperDomainError
from ..domain.models import DiscoveryResult, UrlError
from ..observability.logger import get_logger
from ..scraping.http_fetcher import HttpFetcher
from ..utils.robots import extract_sitemap_urls, robots_url_for
from ..utils.url_priority import should_skip_url, sort_by_priority
from ..utils.validators import extract_root_url, is_valid_http_url

logger = get_logger(__name__)


def _canonical_url(u: str) -> str:
    url, _ = urldefrag(u.strip())
    p = urlparse(url)
    if not p.path:
        url = p._replace(path="/").geturl()
    return url


def parse_sitemap_xml(xml: str) -> tuple[str, list[str]]:
    """Parse a sitemap body.

    Returns ``(kind, locs)`` where kind is ``"urlset"``, ``"sitemapindex"`` or
    ``""`` for any other document shape (which yields no URLs).
    """
    soup = BeautifulSoup(xml, "xml")

    urlset = soup.find("urlset")
    if urlset is not None:
        return "urlset", _child_locs(urlset, "url")

    index = soup.find("sitemapindex")
    if index is not None:
        return "sitemapindex", _child_locs(index, "sitemap")

    return "", []


def _child_locs(parent, entry_tag: str) -> list[str]:
    locs: list[str] = []
    for entry in parent.find_all(entry_tag, recursive=False):
        loc = entry.find("loc", recursive=False)
        if loc is None:
            continue
        text = loc.get_text(strip=True)
        if text:
            locs.append(text)
    return locs


def extract_homepage_links(html: str, *, base_url: str) -> list[str]:
    """All href targets on a page, resolved to absolute URLs (document order)."""
    soup = BeautifulSoup(html, "lxml")
    out: list[str] = []
    for tag in soup.find_all(href=True):
        href = str(tag.get("href") or "").strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:", "data:")):
            continue
        try:
            out.append(urljoin(base_url, href))
        except ValueError:
            continue
    return out


class UrlDiscoveryService:
    """Discovery engine over a shared HttpFetcher."""

    def __init__(self, *, fetcher: HttpFetcher):
        self._fetcher = fetcher

    async def discover(self, root_url: str, max_pages: int) -> DiscoveryResult:
        normalized_root = extract_root_url(root_url)
        root_host = (urlparse(normalized_root).hostname or "").lower()
        errors: list[UrlError] = []

        logger.info("discovery_started", root_url=normalized_root, max_pages=max_pages)

        strategies: list[tuple[str, Callable[[], Awaitable[list[str]]]]] = [
            ("sitemap", lambda: self._fetch_sitemap(f"{normalized_root}/sitemap.xml", errors, set())),
            ("robots", lambda: self._sitemaps_from_robots(normalized_root, errors)),
            ("homepage", lambda: self._homepage_links(normalized_root, errors)),
        ]

        usable: list[str] = []
        for name, strategy in strategies:
            raw = await strategy()
            usable = self._filter_candidates(raw, root_host=root_host)
            logger.info(
                "discovery_strategy_finished",
                strategy=name,
                raw_count=len(raw),
                usable_count=len(usable),
            )
            if usable:
                break

        if not usable:
            logger.warning("discovery_no_pages_found", root_url=normalized_root, errors=len(errors))
            raise NoPagesDiscoveredError("No pages found on website", detail=normalized_root)

        limited = sort_by_priority(usable)[: max(1, int(max_pages))]
        logger.info("discovery_completed", root_domain=root_host, urls=len(limited), candidates=len(usable))
        return DiscoveryResult(urls=limited, root_domain=root_host, errors=errors)

    def _filter_candidates(self, raw: list[str], *, root_host: str) -> list[str]:
        seen: set[str] = set()
        out: list[str] = []
        for candidate in raw:
            if not candidate:
                continue
            url = _canonical_url(candidate)
            if not is_valid_http_url(url):
                continue
            if (urlparse(url).hostname or "").lower() != root_host:
                continue
            if should_skip_url(url):
                continue
            if url in seen:
                continue
            seen.add(url)
            out.append(url)
        return out

    async def _get_text(self, url: str, errors: list[UrlError]) -> Optional[str]:
        try:
            resp = await self._fetcher.fetch(url)
        except ScraperDomainError as e:
            logger.info("discovery_fetch_failed", url=url, error=str(e))
            errors.append(UrlError(url=url, error=str(e)))
            return None
        if not resp.ok:
            logger.info("discovery_fetch_non_ok", url=url, status=resp.status)
            errors.append(UrlError(url=url, error=f"HTTP {resp.status}"))
            return None
        return resp.text

    async def _fetch_sitemap(self, sitemap_url: str, errors: list[UrlError], visited: set[str]) -> list[str]:
        if sitemap_url in visited:
            return []
        visited.add(sitemap_url)

        body = await self._get_text(sitemap_url, errors)
        if body is None:
            return []

        try:
            kind, locs = parse_sitemap_xml(body)
        except Exception as e:  # parser errors on arbitrary bodies are non-fatal
            logger.info("sitemap_parse_failed", url=sitemap_url, error=str(e))
            errors.append(UrlError(url=sitemap_url, error=f"sitemap parse error: {e}"))
            return []

        if kind == "urlset":
            return locs
        if kind == "sitemapindex":
            urls: list[str] = []
            for child in locs:
                urls.extend(await self._fetch_sitemap(child, errors, visited))
            return urls
        return []

    async def _sitemaps_from_robots(self, root_url: str, errors: list[UrlError]) -> list[str]:
        body = await self._get_text(robots_url_for(root_url), errors)
        if body is None:
            return []
        urls: list[str] = []
        visited: set[str] = set()
        for sitemap_url in extract_sitemap_urls(body):
            urls.extend(await self._fetch_sitemap(sitemap_url, errors, visited))
        return urls

    async def _homepage_links(self, root_url: str, errors: list[UrlError]) -> list[str]:
        homepage = f"{root_url}/"
        body = await self._get_text(homepage, errors)
        if body is None:
            return []
        return extract_homepage_links(body, base_url=homepage)
