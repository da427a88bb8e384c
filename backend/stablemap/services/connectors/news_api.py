# backend/stablemap/services/connectors/news_api.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from .base import BaseConnector, NewsArticle
from ...core.config import get_settings
from ...core.errors import ConnectorError

logger = logging.getLogger(__name__)

settings = get_settings()

MAX_PAGE_SIZE = 100


def parse_articles(data: Dict[str, Any]) -> List[NewsArticle]:
    articles: List[NewsArticle] = []
    for a in data.get("articles") or []:
        published = a.get("publishedAt") or ""
        articles.append(
            NewsArticle(
                title=a.get("title") or "",
                source=(a.get("source") or {}).get("name") or "Unknown",
                date=published.split("T")[0] if published else "",
                summary=a.get("description") or "",
                url=a.get("url") or "#",
                author=a.get("author") or None,
            )
        )
    return articles


class NewsApiConnector(BaseConnector):
    """NewsAPI.org `/everything` search, English only."""

    name = "news_api"

    def __init__(self) -> None:
        self.base_url: str = settings.NEWS_API_BASE_URL
        self.timeout: int = int(settings.SEARCH_TIMEOUT_SECONDS or 30)

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(
                f"{self.base_url}/everything",
                params=params,
                headers={"X-Api-Key": settings.NEWS_API_KEY or ""},
            )
        self._raise_for_status(resp)
        return resp.json()

    async def everything(
        self,
        query: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        page_size: int = 20,
        sort_by: str = "publishedAt",
    ) -> List[NewsArticle]:
        if not settings.NEWS_API_KEY:
            raise ConnectorError(self.name, "NEWS_API_KEY not configured")

        params: Dict[str, Any] = {
            "q": query,
            "sortBy": sort_by,
            "pageSize": min(page_size or 20, MAX_PAGE_SIZE),
            "language": "en",
        }
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date

        try:
            data = await self._get(params)
        except httpx.HTTPError as e:
            raise ConnectorError(self.name, str(e)) from e

        if data.get("status") != "ok":
            raise ConnectorError(self.name, data.get("message") or "NewsAPI error")

        articles = parse_articles(data)
        logger.info(
            "NewsAPI returned %d articles",
            len(articles),
            extra={"connector": self.name, "query": query},
        )
        return articles
