"""Domain-specific errors.

These errors are mapped to HTTP status codes in the API layer and to terminal
run states in the workflow service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class ScraperDomainError(Exception):
    """Base class for all domain errors."""


@dataclass(frozen=True)
class DomainErrorInfo:
    code: str
    message: str
    detail: Optional[str] = None


class InvalidInputError(ScraperDomainError):
    """Raised when request/config validation fails."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="INVALID_INPUT", message=message, detail=detail)


class NetworkTimeoutError(ScraperDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="NETWORK_TIMEOUT", message=message, detail=detail)


class ContentProcessingError(ScraperDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="CONTENT_PROCESSING_ERROR", message=message, detail=detail)


class DatabaseError(ScraperDomainError):
    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code="DATABASE_ERROR", message=message, detail=detail)


class RunNotFoundError(ScraperDomainError):
    def __init__(self, run_id: str):
        super().__init__(f"Workflow run not found: {run_id}")
        self.info = DomainErrorInfo(code="RUN_NOT_FOUND", message="Workflow run not found", detail=run_id)


class FatalStepError(ScraperDomainError):
    """A step error that terminates the run immediately and is never retried."""

    code = "FATAL_STEP_ERROR"

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code=self.code, message=message, detail=detail)


class NoPagesDiscoveredError(FatalStepError):
    code = "NO_PAGES_DISCOVERED"


class ContentTooShortError(FatalStepError):
    code = "CONTENT_TOO_SHORT"


class UnparsableResponseError(FatalStepError):
    code = "UNPARSABLE_RESPONSE"
