"""Framework-agnostic domain models.

Step outputs are persisted as JSON in the run's step log, so every model that
crosses a step boundary has a ``to_dict`` / ``from_dict`` pair.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def from_stored(cls, value: str) -> "RunStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_open(self) -> bool:
        return self in (RunStatus.PENDING, RunStatus.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepName(str, Enum):
    DISCOVER = "discover"
    SCRAPE = "scrape"
    AGGREGATE = "aggregate"
    ANALYZE = "analyze"


STEP_ORDER: tuple[StepName, ...] = (
    StepName.DISCOVER,
    StepName.SCRAPE,
    StepName.AGGREGATE,
    StepName.ANALYZE,
)


class ProviderName(str, Enum):
    JINA = "jina"
    FIRECRAWL = "firecrawl"


class Industry(str, Enum):
    RESTAURANT = "restaurant"
    RETAIL = "retail"
    HEALTHCARE = "healthcare"
    CONSTRUCTION = "construction"
    AUTOMOTIVE = "automotive"
    LEGAL = "legal"
    REAL_ESTATE = "real_estate"
    FITNESS = "fitness"
    SALON_SPA = "salon_spa"
    HVAC = "hvac"
    CLEANING = "cleaning"
    PLUMBING = "plumbing"
    LANDSCAPING = "landscaping"
    DENTAL = "dental"
    VETERINARY = "veterinary"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "Industry":
        """Map arbitrary model output onto the enum, defaulting to OTHER."""
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return cls.OTHER
        return cls.OTHER


@dataclass(frozen=True)
class UrlError:
    url: str
    error: str


@dataclass(frozen=True)
class DiscoveryResult:
    urls: list[str]
    root_domain: str
    errors: list[UrlError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiscoveryResult":
        return cls(
            urls=list(data.get("urls") or []),
            root_domain=str(data.get("root_domain") or ""),
            errors=[UrlError(**e) for e in data.get("errors") or []],
        )


@dataclass(frozen=True)
class PageContent:
    url: str
    content: str

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ScrapeResult:
    success: bool
    provider: ProviderName
    content: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchScrapeResult:
    pages: list[PageContent]
    errors: list[UrlError]
    total_scraped: int
    total_failed: int

    @property
    def is_total_failure(self) -> bool:
        # Majority failure alone is tolerated: any successful page lets the run proceed.
        attempted = self.total_scraped + self.total_failed
        if attempted == 0:
            return True
        failure_rate = self.total_failed / attempted
        return failure_rate > 0.5 and self.total_scraped == 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BatchScrapeResult":
        return cls(
            pages=[PageContent(**p) for p in data.get("pages") or []],
            errors=[UrlError(**e) for e in data.get("errors") or []],
            total_scraped=int(data.get("total_scraped") or 0),
            total_failed=int(data.get("total_failed") or 0),
        )


@dataclass(frozen=True)
class AggregatedContent:
    content: str
    included_urls: list[str]
    excluded_urls: list[str]
    total_chars: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AggregatedContent":
        return cls(
            content=str(data.get("content") or ""),
            included_urls=list(data.get("included_urls") or []),
            excluded_urls=list(data.get("excluded_urls") or []),
            total_chars=int(data.get("total_chars") or 0),
        )


@dataclass(frozen=True)
class PagesSummary:
    total_analyzed: int
    key_pages: list[str]


@dataclass(frozen=True)
class SeoAnalysis:
    keywords: list[str]
    location: Optional[str]
    industry: Industry
    meta_title: Optional[str]
    meta_description: Optional[str]
    pages_summary: Optional[PagesSummary] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["industry"] = self.industry.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeoAnalysis":
        summary = data.get("pages_summary")
        return cls(
            keywords=list(data.get("keywords") or []),
            location=data.get("location"),
            industry=Industry.coerce(data.get("industry")),
            meta_title=data.get("meta_title"),
            meta_description=data.get("meta_description"),
            pages_summary=PagesSummary(**summary) if summary else None,
        )


@dataclass(frozen=True)
class SeoAnalysisResult:
    success: bool
    data: Optional[SeoAnalysis] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "SeoAnalysisResult":
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeoAnalysisResult":
        payload = data.get("data")
        return cls(
            success=bool(data.get("success")),
            data=SeoAnalysis.from_dict(payload) if payload else None,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class CrawlParams:
    root_url: str
    client_id: str
    provider: ProviderName
    max_pages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_url": self.root_url,
            "client_id": self.client_id,
            "provider": self.provider.value,
            "max_pages": self.max_pages,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawlParams":
        return cls(
            root_url=str(data["root_url"]),
            client_id=str(data["client_id"]),
            provider=ProviderName(data["provider"]),
            max_pages=int(data["max_pages"]),
        )


@dataclass(frozen=True)
class CrawlWorkflowResult:
    success: bool
    pages_discovered: int
    pages_scraped: int
    pages_analyzed: int
    analysis: Optional[SeoAnalysis] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pages_discovered": self.pages_discovered,
            "pages_scraped": self.pages_scraped,
            "pages_analyzed": self.pages_analyzed,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawlWorkflowResult":
        analysis = data.get("analysis")
        return cls(
            success=bool(data.get("success")),
            pages_discovered=int(data.get("pages_discovered") or 0),
            pages_scraped=int(data.get("pages_scraped") or 0),
            pages_analyzed=int(data.get("pages_analyzed") or 0),
            analysis=SeoAnalysis.from_dict(analysis) if analysis else None,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class StepRecord:
    name: StepName
    status: StepStatus
    ordinal: int
    output: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass(frozen=True)
class WorkflowRun:
    run_id: str
    client_id: str
    params: CrawlParams
    status: RunStatus
    steps: list[StepRecord] = field(default_factory=list)
    result: Optional[CrawlWorkflowResult] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def step(self, name: StepName) -> Optional[StepRecord]:
        for s in self.steps:
            if s.name == name:
                return s
        return None
