from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ...core.errors import ConnectorError
from ...schemas.directory import SearchResult


@dataclass
class SearchResponse:
    results: List[SearchResult] = field(default_factory=list)
    model_summary: str = ""


@dataclass
class FetchedPage:
    url: str
    title: str = ""
    content: str = ""
    content_length: int = 0
    truncated: bool = False
    fetch_failed: bool = False


@dataclass
class NewsArticle:
    title: str
    source: str
    date: str
    summary: str
    url: str = "#"
    author: Optional[str] = None


class BaseConnector(ABC):
    """Shared plumbing for the HTTP collaborators."""

    name: str

    def _raise_for_status(self, resp: httpx.Response) -> None:
        # 5xx is retried by tenacity through httpx.HTTPStatusError; 4xx is final
        if resp.status_code >= 500:
            resp.raise_for_status()
        if resp.status_code >= 400:
            raise ConnectorError(self.name, resp.text[:200], status_code=resp.status_code)
