from __future__ import annotations

import pytest

from seocrawl.domain.errors import InvalidInputError
from seocrawl.utils.validators import clamp_int, coerce_http_url, extract_root_url, is_valid_http_url


def test_extract_root_url_strips_path_query_and_fragment() -> None:
    assert extract_root_url("https://Example.com/about?x=1#team") == "https://example.com"
    assert extract_root_url("http://example.com:8080/a/b") == "http://example.com:8080"


def test_extract_root_url_adds_scheme() -> None:
    assert extract_root_url("example.com/contact") == "https://example.com"


@pytest.mark.parametrize("bad", ["", "not a url", "https://"])
def test_extract_root_url_rejects_malformed_input(bad: str) -> None:
    with pytest.raises(InvalidInputError):
        extract_root_url(bad)


def test_is_valid_http_url() -> None:
    assert is_valid_http_url("https://example.com/x")
    assert not is_valid_http_url("mailto:a@example.com")
    assert not is_valid_http_url("/relative/path")


def test_coerce_and_clamp() -> None:
    assert coerce_http_url("  example.com ") == "https://example.com"
    assert coerce_http_url("http://example.com") == "http://example.com"
    assert clamp_int(0, 1, 50) == 1
    assert clamp_int(500, 1, 50) == 50
    assert clamp_int(20, 1, 50) == 20
