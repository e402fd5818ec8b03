"""AI analysis adapter: website text in, structured SEO fields out.

The model is treated as untrusted: its reply is searched for the first
balanced JSON object and every field is sanitized before it leaves here.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from ..domain.errors import ContentTooShortError, UnparsableResponseError
from ..domain.models import Industry, PagesSummary, SeoAnalysis, SeoAnalysisResult
from ..llm.runtime import LLMRequest, LLMRuntime
from ..observability.logger import get_logger
from ..utils.time import current_time_ms, elapsed_ms

logger = get_logger(__name__)

MAX_META_TITLE_CHARS = 60
MAX_META_DESCRIPTION_CHARS = 160
MAX_KEY_PAGES = 5

_INDUSTRY_LIST = ", ".join(i.value for i in Industry)

SINGLE_PAGE_PROMPT = (
    "You are an SEO expert analyzing website content. Extract the following information "
    "and return ONLY valid JSON:\n\n"
    "{\n"
    '  "keywords": ["array", "of", "relevant", "seo", "keywords"],\n'
    '  "location": "city, state or null if not found",\n'
    f'  "industry": "one of: {_INDUSTRY_LIST}",\n'
    '  "metaTitle": "suggested SEO title (max 60 chars)",\n'
    '  "metaDescription": "suggested meta description (max 160 chars)"\n'
    "}\n\n"
    "Rules:\n"
    "- Extract 5-10 relevant keywords that describe the business\n"
    "- Location should be the primary service area or business location\n"
    '- Industry MUST be one of the predefined options, use "other" if unclear\n'
    "- Meta title should include business name and primary service\n"
    "- Meta description should be compelling and include location if relevant\n\n"
    "Website content to analyze:\n"
)

MULTI_PAGE_PROMPT = (
    "You are an SEO expert analyzing website content from MULTIPLE pages of a website.\n"
    'Each page is separated by "--- PAGE: [URL] ---".\n\n'
    "Extract comprehensive SEO information considering ALL pages and return ONLY valid JSON:\n\n"
    "{\n"
    '  "keywords": ["array", "of", "relevant", "seo", "keywords"],\n'
    '  "location": "city, state or null if not found",\n'
    f'  "industry": "one of: {_INDUSTRY_LIST}",\n'
    '  "metaTitle": "suggested SEO title (max 60 chars)",\n'
    '  "metaDescription": "suggested meta description (max 160 chars)",\n'
    '  "keyPages": ["list", "of", "most", "important", "page", "paths"]\n'
    "}\n\n"
    "Rules:\n"
    "- Extract up to 10 relevant keywords from across ALL pages\n"
    "- Consider keywords from services, about, and product pages as highest priority\n"
    "- Location should be the primary service area or business location "
    "(often found on contact/about pages)\n"
    '- Industry MUST be one of the predefined options, use "other" if unclear\n'
    "- Meta title should capture the core business identity\n"
    "- Meta description should summarize the business holistically\n"
    '- keyPages should list 3-5 most important page paths (e.g., "/services", "/about")\n\n'
    "Website content to analyze:\n"
)


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in ``text``, or None.

    Braces inside JSON strings (including escaped quotes) do not count toward
    the nesting depth, so code fences and chatty preambles are tolerated.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def parse_model_reply(text: str) -> dict[str, Any]:
    if not text or not text.strip():
        raise UnparsableResponseError("No response from AI")
    blob = find_json_object(text)
    if blob is None:
        snippet = text.strip().replace("\n", " ")
        raise UnparsableResponseError("Could not parse AI response as JSON", detail=f"first={snippet[:200]}")
    try:
        obj = json.loads(blob)
    except json.JSONDecodeError as e:
        raise UnparsableResponseError("Could not parse AI response as JSON", detail=str(e)) from e
    if not isinstance(obj, dict):
        raise UnparsableResponseError("Could not parse AI response as JSON", detail="not an object")
    return obj


def _string_list(value: Any, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)][:limit]


def _bounded_str(value: Any, limit: int) -> Optional[str]:
    return value[:limit] if isinstance(value, str) else None


def sanitize_analysis(
    raw: dict[str, Any],
    *,
    max_keywords: int,
    multi_page: bool = False,
    pages_analyzed: int = 1,
) -> SeoAnalysis:
    pages_summary = None
    if multi_page:
        pages_summary = PagesSummary(
            total_analyzed=pages_analyzed,
            key_pages=_string_list(raw.get("keyPages"), MAX_KEY_PAGES),
        )
    location = raw.get("location")
    return SeoAnalysis(
        keywords=_string_list(raw.get("keywords"), max_keywords),
        location=location if isinstance(location, str) else None,
        industry=Industry.coerce(raw.get("industry")),
        meta_title=_bounded_str(raw.get("metaTitle"), MAX_META_TITLE_CHARS),
        meta_description=_bounded_str(raw.get("metaDescription"), MAX_META_DESCRIPTION_CHARS),
        pages_summary=pages_summary,
    )


class SeoAnalyzer:
    """Turns website text into an ``SeoAnalysisResult`` through an LLM runtime.

    Error contract:
    - Too little text raises ContentTooShortError before any model call.
    - A reply without a parsable JSON object raises UnparsableResponseError.
    - Transport failures from the runtime propagate unchanged (retryable).
    """

    def __init__(
        self,
        *,
        llm: LLMRuntime,
        model: str,
        min_content_length: int = 50,
        max_content_length: int = 100_000,
        max_multi_page_chars: int = 800_000,
        max_keywords: int = 10,
        temperature: float = 0.1,
        max_tokens: int = 4096,
        timeout_seconds: int = 120,
    ):
        self._llm = llm
        self._model = model
        self._min_chars = int(min_content_length)
        self._max_chars = int(max_content_length)
        self._max_multi_chars = int(max_multi_page_chars)
        self._max_keywords = int(max_keywords)
        self._temperature = float(temperature)
        self._max_tokens = int(max_tokens)
        self._timeout_seconds = int(timeout_seconds)

    @property
    def provider(self) -> str:
        return self._llm.provider

    async def analyze(self, content: str, *, multi_page: bool = False, pages_analyzed: int = 1) -> SeoAnalysisResult:
        text = (content or "").strip()
        if len(text) < self._min_chars:
            raise ContentTooShortError("Content too short to analyze", detail=f"chars={len(text)}")

        limit = self._max_multi_chars if multi_page else self._max_chars
        truncated = text[:limit]
        prompt = (MULTI_PAGE_PROMPT if multi_page else SINGLE_PAGE_PROMPT) + truncated

        start_ms = current_time_ms()
        reply = await self._llm.complete(
            LLMRequest(
                prompt=prompt,
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout_seconds=self._timeout_seconds,
            )
        )
        raw = parse_model_reply(reply)
        analysis = sanitize_analysis(
            raw,
            max_keywords=self._max_keywords,
            multi_page=multi_page,
            pages_analyzed=pages_analyzed,
        )
        logger.info(
            "seo_analysis_completed",
            provider=self._llm.provider,
            model=self._model,
            multi_page=multi_page,
            input_chars=len(truncated),
            truncated=len(truncated) < len(text),
            keywords=len(analysis.keywords),
            industry=analysis.industry.value,
            elapsed_ms=elapsed_ms(start_ms),
        )
        return SeoAnalysisResult(success=True, data=analysis)
