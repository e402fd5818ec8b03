"""FastAPI app: crawl start, crawl status and one-shot analysis.

Authentication happens upstream; the gateway forwards the caller identity in
``X-User-Id``. When ``internal_api_key`` is configured the gateway must also
present it in ``X-Gateway-Key``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config.settings import get_settings
from .domain.errors import InvalidInputError, ScraperDomainError
from .domain.models import CrawlParams, CrawlWorkflowResult, ProviderName, SeoAnalysis
from .models.requests import AnalyzeRequest, CrawlRequest
from .observability.logger import get_logger
from .services.quick_analysis import QuickAnalysisResult
from .services.status_service import CrawlStatus
from .utils.validators import clamp_int, extract_root_url

logger = get_logger(__name__)

# Populated by the lifespan manager (or by tests).
app_state: dict[str, Any] = {}

app = FastAPI(title="SEO Crawl Service", version="0.1.0")


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def _service(name: str):
    svc = app_state.get(name)
    if svc is None:
        raise HTTPException(status_code=503, detail=f"{name}_unavailable")
    return svc


def _check_gateway_key(x_gateway_key: str | None) -> None:
    settings = get_settings()
    if settings.internal_api_key and x_gateway_key != settings.internal_api_key:
        raise HTTPException(status_code=401, detail="invalid_gateway_key")


async def optional_caller(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_gateway_key: str | None = Header(default=None, alias="X-Gateway-Key"),
) -> Optional[str]:
    _check_gateway_key(x_gateway_key)
    return (x_user_id or "").strip() or None


async def require_caller(caller: Optional[str] = Depends(optional_caller)) -> str:
    if not caller:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return caller


def _required_str(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _parse_max_pages(raw: Any) -> int:
    settings = get_settings()
    if raw is None:
        requested = settings.default_max_pages
    elif isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise HTTPException(status_code=400, detail="maxPages must be a number")
    elif isinstance(raw, float) and not raw.is_integer():
        raise HTTPException(status_code=400, detail="maxPages must be a whole number")
    else:
        requested = int(raw)
    return clamp_int(requested, 1, settings.max_pages_to_crawl)


def _parse_provider(raw: Any) -> ProviderName:
    if raw is None:
        return ProviderName(get_settings().default_provider)
    if not isinstance(raw, str):
        raise HTTPException(status_code=400, detail="Unknown provider")
    try:
        return ProviderName(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {raw}") from None


def _serialize_analysis(analysis: SeoAnalysis | None) -> dict | None:
    if analysis is None:
        return None
    payload: dict[str, Any] = {
        "keywords": list(analysis.keywords),
        "location": analysis.location,
        "industry": analysis.industry.value,
        "metaTitle": analysis.meta_title,
        "metaDescription": analysis.meta_description,
    }
    if analysis.pages_summary is not None:
        payload["pagesSummary"] = {
            "totalAnalyzed": analysis.pages_summary.total_analyzed,
            "keyPages": list(analysis.pages_summary.key_pages),
        }
    return payload


def _serialize_result(result: CrawlWorkflowResult) -> dict:
    payload: dict[str, Any] = {
        "success": result.success,
        "pagesDiscovered": result.pages_discovered,
        "pagesScraped": result.pages_scraped,
        "pagesAnalyzed": result.pages_analyzed,
    }
    if result.analysis is not None:
        payload["analysis"] = _serialize_analysis(result.analysis)
    if result.error:
        payload["error"] = result.error
    return payload


def _serialize_status(status: CrawlStatus) -> dict:
    payload: dict[str, Any] = {
        "runId": status.run_id,
        "status": status.status,
        "currentStep": status.current_step,
    }
    if status.result is not None:
        payload["result"] = _serialize_result(status.result)
    if status.error:
        payload["error"] = status.error
    return payload


def _serialize_quick_analysis(result: QuickAnalysisResult) -> dict:
    data = _serialize_analysis(result.data) or {}
    return {
        "success": True,
        "provider": result.provider.value,
        "data": {"websiteUrl": result.website_url, **data},
    }


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/crawl")
async def start_crawl(payload: CrawlRequest, caller: Optional[str] = Depends(optional_caller)):
    url = _required_str(payload.url)
    if url is None:
        raise HTTPException(status_code=400, detail="URL is required")
    client_id = _required_str(payload.clientId)
    if client_id is None:
        raise HTTPException(status_code=400, detail="Client ID is required")
    provider = _parse_provider(payload.provider)
    try:
        root_url = extract_root_url(url)
    except InvalidInputError:
        raise HTTPException(status_code=400, detail="Invalid URL format") from None

    params = CrawlParams(
        root_url=root_url,
        client_id=client_id,
        provider=provider,
        max_pages=_parse_max_pages(payload.maxPages),
    )

    workflow = _service("workflow_service")
    try:
        run_id = await workflow.start(params, requested_by=caller)
    except (ScraperDomainError, ValueError) as e:
        logger.error("crawl_start_failed", client_id=params.client_id, error=str(e))
        return JSONResponse(status_code=500, content={"error": "Failed to start crawl workflow"})

    return {"success": True, "runId": run_id, "message": "Crawl workflow started"}


@app.get("/crawl/{run_id}")
async def get_crawl_status(run_id: str, caller: str = Depends(require_caller)):
    status_service = _service("status_service")
    status = await status_service.get_status(run_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Workflow run not found")
    return _serialize_status(status)


@app.post("/analyze")
async def analyze(payload: AnalyzeRequest, caller: str = Depends(require_caller)):
    url = _required_str(payload.url)
    if url is None:
        raise HTTPException(status_code=400, detail="URL is required")
    provider = _parse_provider(payload.provider)

    quick = _service("quick_analysis_service")
    result = await quick.analyze_url(url, provider)
    if not result.success:
        return JSONResponse(
            status_code=422,
            content={"error": result.error or "AI analysis failed", "provider": result.provider.value},
        )
    return _serialize_quick_analysis(result)
