"""Validation helpers."""

from __future__ import annotations

from urllib.parse import urlparse

from ..domain.errors import InvalidInputError


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)
    except ValueError:
        return False


def coerce_http_url(url: str) -> str:
    """Return ``url`` with an ``https://`` scheme added when it has none."""
    u = (url or "").strip()
    if not u.lower().startswith(("http://", "https://")):
        u = f"https://{u}"
    return u


def extract_root_url(url: str) -> str:
    """Normalize any URL to its ``scheme://host[:port]`` root.

    Raises InvalidInputError when the input cannot be coerced into a URL even
    after prefixing ``https://``.
    """
    candidate = coerce_http_url(url)
    if any(ch.isspace() for ch in candidate) or not is_valid_http_url(candidate):
        raise InvalidInputError(f"Invalid URL: {url}")
    parsed = urlparse(candidate)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def clamp_int(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(v)))
