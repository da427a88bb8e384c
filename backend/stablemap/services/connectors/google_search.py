# backend/stablemap/services/connectors/google_search.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from .base import BaseConnector, SearchResponse
from ..caching import cache_key, cached_get
from ..normalizers import clean_search_title, looks_like_url
from ...core.config import get_settings
from ...core.errors import ConnectorError
from ...schemas.directory import SearchResult

logger = logging.getLogger(__name__)

settings = get_settings()

DATE_RESTRICT_PHRASES = {
    "d1": "from the past day",
    "d7": "from the past week",
    "w2": "from the past 2 weeks",
    "m1": "from the past month",
    "m3": "from the past 3 months",
    "y1": "from the past year",
}

MAX_SNIPPET_CHARS = 400

_HREF_RE = re.compile(r'href="(https?://[^"]+)"')


def build_search_prompt(
    query: str,
    date_restrict: Optional[str] = None,
    site_search: Optional[str] = None,
    sort: Optional[str] = None,
) -> str:
    prompt = query
    if site_search and "site:" not in query:
        prompt += f" site:{site_search}"
    phrase = DATE_RESTRICT_PHRASES.get(date_restrict or "")
    if phrase:
        prompt += f" {phrase}"
    if sort == "date":
        prompt += ", most recent first"
    return prompt


def _real_urls(rendered_html: str) -> List[str]:
    urls: List[str] = []
    for href in _HREF_RE.findall(rendered_html or ""):
        host = urlparse(href).hostname or ""
        if "vertexaisearch" not in host and "google.com" not in host:
            urls.append(href)
    return urls


def parse_grounding_response(data: Dict[str, Any], num: int = 10) -> SearchResponse:
    """
    Map a Gemini grounded response into SearchResults.

    Each grounding chunk becomes one result; its snippet is the text of the
    supports that cite it. Proxy redirect URLs are swapped for a real URL
    from the search entry point when the title names its host.
    """
    candidates = data.get("candidates") or []
    if not candidates:
        return SearchResponse()
    candidate = candidates[0] or {}

    parts = (candidate.get("content") or {}).get("parts") or []
    model_summary = "\n".join(p.get("text") or "" for p in parts if isinstance(p, dict))

    metadata = candidate.get("groundingMetadata") or {}
    chunks = metadata.get("groundingChunks") or []
    supports = metadata.get("groundingSupports") or []
    real_urls = _real_urls((metadata.get("searchEntryPoint") or {}).get("renderedContent", ""))

    results: List[SearchResult] = []
    for idx, chunk in enumerate(chunks):
        web = chunk.get("web") or {}
        uri = web.get("uri") or ""
        title = web.get("title") or ""

        if "vertexaisearch.cloud.google.com" in uri and real_urls:
            title_lower = title.lower()
            for url in real_urls:
                stem = (urlparse(url).hostname or "").replace("www.", "").split(".")[0]
                if stem and stem in title_lower:
                    uri = url
                    break

        snippet = " ".join(
            (s.get("segment") or {}).get("text") or ""
            for s in supports
            if idx in (s.get("groundingChunkIndices") or [])
        ).strip()[:MAX_SNIPPET_CHARS]

        display_link = (urlparse(uri).hostname or "") if uri else ""
        if "vertexaisearch" in display_link:
            # Grounding titles for proxied chunks are usually the bare domain
            display_link = title.strip().lower() if looks_like_url(title) else ""

        results.append(
            SearchResult(
                title=clean_search_title(title, snippet),
                link=uri,
                snippet=snippet,
                display_link=display_link,
            )
        )

    return SearchResponse(results=results[: num or 10], model_summary=model_summary)


class GoogleSearchConnector(BaseConnector):
    """
    Web search through Gemini with the `google_search` grounding tool.

    Only GOOGLE_AI_API_KEY is needed; identical queries are cached in Redis
    for SEARCH_CACHE_TTL_SECONDS.
    """

    name = "google_search"

    def __init__(self) -> None:
        self.base_url: str = settings.GOOGLE_AI_BASE_URL
        self.model: str = settings.SEARCH_MODEL
        self.timeout: int = int(settings.SEARCH_TIMEOUT_SECONDS or 30)

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _generate(self, prompt: str) -> Dict[str, Any]:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "tools": [{"google_search": {}}],
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": settings.GOOGLE_AI_API_KEY or ""},
                json=payload,
            )
        self._raise_for_status(resp)
        return resp.json()

    async def search(
        self,
        query: str,
        num: int = 10,
        date_restrict: Optional[str] = None,
        site_search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> SearchResponse:
        if not query or not query.strip():
            return SearchResponse()
        if not settings.GOOGLE_AI_API_KEY:
            raise ConnectorError(self.name, "GOOGLE_AI_API_KEY not configured")

        prompt = build_search_prompt(query, date_restrict, site_search, sort)
        key = cache_key("search", self.model, prompt, num)

        cached = await cached_get(key)
        if cached is not None:
            return SearchResponse(
                results=[SearchResult(**r) for r in cached.get("results", [])],
                model_summary=cached.get("model_summary", ""),
            )

        try:
            data = await self._generate(prompt)
        except httpx.HTTPError as e:
            raise ConnectorError(self.name, str(e)) from e

        response = parse_grounding_response(data, num)
        logger.info(
            "Search returned %d results",
            len(response.results),
            extra={"connector": self.name, "query": query},
        )

        await cached_get(
            key,
            set_value={
                "results": [r.model_dump() for r in response.results],
                "model_summary": response.model_summary,
            },
            ttl=settings.SEARCH_CACHE_TTL_SECONDS,
        )
        return response
