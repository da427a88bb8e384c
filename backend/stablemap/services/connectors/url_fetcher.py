# backend/stablemap/services/connectors/url_fetcher.py
from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from .base import BaseConnector, FetchedPage
from ...core.config import get_settings
from ...core.errors import ConnectorError

logger = logging.getLogger(__name__)

settings = get_settings()

TRUNCATION_MARKER = "\n\n[Content truncated...]"

_BLOCK_TAGS = ["p", "div", "li", "tr", "br", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article"]


def html_to_text(html: str) -> tuple[str, str]:
    """(title, text) for an HTML document, scripts and styles removed."""
    soup = BeautifulSoup(html or "", "html.parser")

    title_tag = soup.find("title")
    title = re.sub(r"\s+", " ", title_tag.get_text()).strip() if title_tag else ""

    for tag in soup(["title", "script", "style", "noscript", "template", "svg"]):
        tag.decompose()
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.append("\n")

    text = soup.get_text()
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return title, text.strip()


class UrlFetcher(BaseConnector):
    """
    Fetch a page and return its readable text.

    Returns None for non-http(s) or malformed URLs. A page that cannot be
    downloaded comes back as FetchedPage(fetch_failed=True) so callers can
    tell "unreadable" apart from "nothing found".
    """

    name = "url_fetcher"

    def __init__(self) -> None:
        self.timeout: int = int(settings.FETCH_TIMEOUT_SECONDS or 20)
        self.max_chars: int = int(settings.FETCH_MAX_CHARS or 15000)

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _download(self, url: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            resp = await client.get(
                url,
                headers={
                    "User-Agent": settings.FETCH_USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                },
            )
        if resp.status_code >= 400:
            raise ConnectorError(self.name, f"Failed to fetch URL: {resp.status_code}", status_code=resp.status_code)
        return resp.text

    async def fetch(self, url: str) -> Optional[FetchedPage]:
        try:
            parsed = urlparse((url or "").strip())
        except ValueError:
            return None
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None

        try:
            html = await self._download(url)
        except (ConnectorError, httpx.HTTPError) as e:
            logger.warning("Fetch failed: %s", e, extra={"connector": self.name, "query": url})
            return FetchedPage(url=url, fetch_failed=True)

        title, text = html_to_text(html)
        truncated = len(text) > self.max_chars
        content = text[: self.max_chars] + TRUNCATION_MARKER if truncated else text
        return FetchedPage(
            url=url,
            title=title,
            content=content,
            content_length=len(text),
            truncated=truncated,
            fetch_failed=not text,
        )
