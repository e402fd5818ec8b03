"""OpenAI adapter.

Uses the official async client for chat completions (GPT-4o, GPT-4.1, ...).
``base_url`` allows OpenAI-compatible gateways.
"""

from __future__ import annotations

import openai
from openai import AsyncOpenAI

from ..domain.errors import ContentProcessingError, NetworkTimeoutError
from ..observability.logger import get_logger
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)


class OpenAIAdapter(LLMRuntime):
    provider = "openai"

    def __init__(self, *, api_key: str | None, base_url: str | None = None):
        if not api_key:
            raise ValueError("OpenAI API key required. Set OPENAI_API_KEY env var.")
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def complete(self, req: LLMRequest) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=req.model,
                messages=[
                    {"role": "system", "content": req.system_prompt},
                    {"role": "user", "content": req.prompt},
                ],
                temperature=float(req.temperature),
                max_tokens=int(req.max_tokens),
                response_format={"type": "json_object"},
                timeout=max(1, int(req.timeout_seconds)),
            )
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise NetworkTimeoutError("openai_timeout_or_network_error", detail=str(e)) from e
        except openai.APIError as e:
            raise ContentProcessingError("openai_request_failed", detail=str(e)) from e

        if not response.choices:
            raise ContentProcessingError("openai_response_invalid", detail="no choices in response")
        text = response.choices[0].message.content or ""
        logger.debug("openai_completion_received", model=req.model, chars=len(text))
        return text
