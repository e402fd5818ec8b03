from __future__ import annotations

import asyncio

import pytest

from seocrawl.domain.errors import ContentProcessingError
from seocrawl.llm.gemini_adapter import GeminiAdapter
from seocrawl.llm.openai_adapter import OpenAIAdapter
from seocrawl.llm.runtime import LLMRequest

from fakes import FakeFetcher, json_response, text_response

BASE = "https://generativelanguage.googleapis.com/v1beta"
ENDPOINT = ("POST", f"{BASE}/models/gemini-2.5-flash:generateContent")
REQUEST = LLMRequest(prompt="Analyze this", model="gemini-2.5-flash", temperature=0.1, max_tokens=512, timeout_seconds=30)


def test_gemini_joins_candidate_parts() -> None:
    fetcher = FakeFetcher(
        {ENDPOINT: json_response({"candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}]})}
    )
    text = asyncio.run(GeminiAdapter(fetcher=fetcher, api_key="g-key", base_url=BASE).complete(REQUEST))
    assert text == '{"a": 1}'

    payload = fetcher.calls[0][2]
    assert payload["contents"][0]["parts"][0]["text"] == "Analyze this"
    assert payload["generationConfig"]["responseMimeType"] == "application/json"
    assert payload["generationConfig"]["maxOutputTokens"] == 512


def test_gemini_errors() -> None:
    blocked = FakeFetcher({ENDPOINT: json_response({"promptFeedback": {"blockReason": "SAFETY"}})})
    with pytest.raises(ContentProcessingError):
        asyncio.run(GeminiAdapter(fetcher=blocked, api_key="g-key", base_url=BASE).complete(REQUEST))

    failing = FakeFetcher({ENDPOINT: text_response("quota exceeded", status=429)})
    with pytest.raises(ContentProcessingError):
        asyncio.run(GeminiAdapter(fetcher=failing, api_key="g-key", base_url=BASE).complete(REQUEST))


def test_adapters_require_api_keys() -> None:
    with pytest.raises(ValueError):
        GeminiAdapter(fetcher=FakeFetcher(), api_key=None, base_url=BASE)
    with pytest.raises(ValueError):
        OpenAIAdapter(api_key="")
