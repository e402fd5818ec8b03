"""Request bodies for the HTTP surface.

Fields are loosely typed and checked in the route, so a missing or mistyped
url/clientId/maxPages gets a specific 400 instead of a generic validation
error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class CrawlRequest(BaseModel):
    url: Any = None
    clientId: Any = None
    provider: Any = None
    maxPages: Any = None


class AnalyzeRequest(BaseModel):
    url: Any = None
    provider: Any = None
