"""LLM runtime interface.

The analysis adapter talks to models only through this interface; the model
itself is a black box (prompt text in, JSON-bearing text out).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LLMRequest:
    prompt: str
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: int
    system_prompt: str = "You are an SEO expert. Respond with a single JSON object."


class LLMRuntime:
    provider: str = ""

    async def complete(self, req: LLMRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError
