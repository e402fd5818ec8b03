"""Gemini adapter.

Uses the Generative Language REST API: POST /models/{model}:generateContent
"""

from __future__ import annotations

from typing import Any

from ..domain.errors import ContentProcessingError
from ..observability.logger import get_logger
from ..scraping.http_fetcher import HttpFetcher
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)


def _response_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise ContentProcessingError("gemini_response_invalid")
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback")
        raise ContentProcessingError("gemini_response_invalid", detail=f"no candidates feedback={feedback}")
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


class GeminiAdapter(LLMRuntime):
    provider = "gemini"

    def __init__(self, *, fetcher: HttpFetcher, api_key: str | None, base_url: str):
        if not api_key:
            raise ValueError("Gemini API key required. Set GEMINI_API_KEY env var.")
        self._fetcher = fetcher
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def complete(self, req: LLMRequest) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": req.system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": req.prompt}]}],
            "generationConfig": {
                "temperature": float(req.temperature),
                "maxOutputTokens": int(req.max_tokens),
                "responseMimeType": "application/json",
            },
        }
        resp = await self._fetcher.fetch(
            f"{self._base_url}/models/{req.model}:generateContent",
            method="POST",
            headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
            json_body=payload,
            timeout_seconds=max(1, int(req.timeout_seconds)),
        )
        if not resp.ok:
            raise ContentProcessingError(
                "gemini_request_failed",
                detail=f"status={resp.status} body={resp.text[:500]}",
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ContentProcessingError("gemini_response_invalid", detail=str(e)) from e

        text = _response_text(data)
        logger.debug("gemini_completion_received", model=req.model, chars=len(text))
        return text
