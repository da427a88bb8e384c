"""
Explicit dependencies for the orchestration functions.

Every business operation takes an EnrichmentContext instead of reaching for
module globals: the search / fetch / news collaborators, the AI client and
its rotation state, the source configuration and the random source used to
pick `site:` clauses. Tests build one out of fakes.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Protocol, Sequence

from ..core.errors import AIUnavailableError, ParseError
from ..schemas.directory import SearchResult
from .connectors import (
    GoogleSearchConnector,
    NewsApiConnector,
    SearchBackend,
    UrlFetcher,
)
from .connectors.base import FetchedPage, NewsArticle
from .llm import AIClient, RotationState
from .normalizers import resolve_source_name, truncate_text
from .sources import SourceConfig
from .structuring import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHARS = 12000


class PageFetcher(Protocol):
    async def fetch(self, url: str) -> Optional[FetchedPage]:
        ...


class NewsBackend(Protocol):
    async def everything(
        self,
        query: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        page_size: int = 20,
        sort_by: str = "publishedAt",
    ) -> List[NewsArticle]:
        ...


class Completer(Protocol):
    async def complete(self, prompt: str, system: Optional[str] = None, temperature: float = 0.5) -> str:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EnrichmentContext:
    search: SearchBackend
    fetcher: PageFetcher
    ai: Completer
    news_api: Optional[NewsBackend] = None
    sources: SourceConfig = field(default_factory=SourceConfig)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def from_settings(cls, rotation: Optional[RotationState] = None) -> "EnrichmentContext":
        return cls(
            search=GoogleSearchConnector(),
            fetcher=UrlFetcher(),
            ai=AIClient(state=rotation),
            news_api=NewsApiConnector(),
            sources=SourceConfig.from_settings(),
        )

    def today(self) -> date:
        return self.clock().date()


async def ask_ai(ctx: EnrichmentContext, prompt: str, operation: str, temperature: float = 0.5) -> Optional[str]:
    """
    Run a completion; None when every model is down so callers can fall
    back to regex extraction.
    """
    try:
        return await ctx.ai.complete(prompt, system=SYSTEM_PROMPT, temperature=temperature)
    except AIUnavailableError as e:
        logger.warning("AI unavailable, using fallback: %s", e, extra={"operation": operation})
        return None


def parse_or_none(parser: Callable, text: Optional[str], operation: str, *args):
    """Apply a block parser, logging and returning None on ParseError."""
    if not text:
        return None
    try:
        return parser(text, *args)
    except ParseError as e:
        logger.info("AI output not parseable: %s", e, extra={"operation": operation})
        return None


def format_results(results: Sequence[SearchResult], ctx: Optional[EnrichmentContext] = None, limit: int = MAX_CONTEXT_CHARS) -> str:
    """Numbered source list for prompts, trimmed to `limit` characters."""
    lines: List[str] = []
    config = ctx.sources if ctx else None
    for i, r in enumerate(results, start=1):
        source = resolve_source_name(r.link, r.display_link, config)
        lines.append(f"[{i}] {r.title} ({source}) {r.link}\n{r.snippet}")
    return truncate_text("\n\n".join(lines), limit)


def combined_text(results: Sequence[SearchResult]) -> str:
    return "\n".join(f"{r.title}. {r.snippet}" for r in results)


def templated_description(company_name: str, results: Sequence[SearchResult], max_snippets: int = 3) -> str:
    """Fallback description stitched from the first few snippets."""
    snippets = [r.snippet.strip() for r in results if r.snippet and r.snippet.strip()][:max_snippets]
    if not snippets:
        return f"{company_name} operates in the digital asset and stablecoin ecosystem."
    body = " ".join(s if s.endswith((".", "!", "?")) else s + "." for s in snippets)
    return truncate_text(body, 600, "...")
