from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .base import BaseConnector, FetchedPage, NewsArticle, SearchResponse
from .google_search import GoogleSearchConnector
from .news_api import NewsApiConnector
from .url_fetcher import UrlFetcher
from ..normalizers import dedupe_results_by_url
from ...core.errors import StableMapError

logger = logging.getLogger(__name__)


class SearchBackend(Protocol):
    async def search(
        self,
        query: str,
        num: int = 10,
        date_restrict: Optional[str] = None,
        site_search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> SearchResponse:
        ...


@dataclass(frozen=True)
class SearchQuery:
    query: str
    num: int = 10
    date_restrict: Optional[str] = None
    site_search: Optional[str] = None
    sort: Optional[str] = None


async def safe_search(search: SearchBackend, q: SearchQuery) -> SearchResponse:
    """One search branch; a failure is logged and contributes nothing."""
    try:
        return await search.search(
            q.query,
            num=q.num,
            date_restrict=q.date_restrict,
            site_search=q.site_search,
            sort=q.sort,
        )
    except StableMapError as e:
        logger.warning("Search branch failed: %s", e, extra={"query": q.query})
    except Exception:
        logger.exception("Search branch raised", extra={"query": q.query})
    return SearchResponse()


async def run_searches(search: SearchBackend, queries: Sequence[SearchQuery]) -> SearchResponse:
    """
    Execute the queries concurrently and merge them.

    Branch order does not matter: results are concatenated and deduplicated
    by URL; model summaries are joined.
    """
    responses = await asyncio.gather(*(safe_search(search, q) for q in queries))

    merged = [r for resp in responses for r in resp.results]
    summaries = [resp.model_summary for resp in responses if resp.model_summary]
    return SearchResponse(results=dedupe_results_by_url(merged), model_summary="\n\n".join(summaries))


__all__ = [
    "BaseConnector",
    "FetchedPage",
    "GoogleSearchConnector",
    "NewsApiConnector",
    "NewsArticle",
    "SearchBackend",
    "SearchQuery",
    "SearchResponse",
    "UrlFetcher",
    "run_searches",
    "safe_search",
]
