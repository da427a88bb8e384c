"""
News feeds: industry-wide, per company and per investor portfolio.

Candidates come from web search plus NewsAPI; noise is dropped before any
AI call and again on the AI output, and every item gets a derived
source_type.
"""
from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.errors import ParseError, StableMapError
from ..schemas.directory import NewsItem, NewsMentions, SearchResult
from .connectors import SearchQuery, run_searches
from .connectors.base import NewsArticle
from .context import EnrichmentContext, ask_ai, format_results
from .directory import merge_news
from .normalizers import clean_search_title, resolve_source_name, truncate_text
from .relevance import classify_news_source_type, is_irrelevant_news
from .sources import build_site_clause, sort_trusted_first
from .structuring import (
    Section,
    build_news_mentions_prompt,
    build_news_prompt,
    extract_labeled_section,
    news_item_id,
    parse_block,
    parse_news_lines,
)

logger = logging.getLogger(__name__)

MAX_NEWS_ITEMS = 20
NEWS_LOOKBACK_DAYS = 30
NEWS_SECTION = Section("NEWS", ("HEADLINES",))
MENTION_SECTIONS = (Section("COMPANIES", ("MENTIONED",)), Section("SUMMARY"))

_ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")


async def _news_api_articles(ctx: EnrichmentContext, query: str) -> List[NewsArticle]:
    if ctx.news_api is None:
        return []
    today = ctx.today()
    try:
        return await ctx.news_api.everything(
            query,
            from_date=(today - timedelta(days=NEWS_LOOKBACK_DAYS)).isoformat(),
            to_date=today.isoformat(),
        )
    except StableMapError as e:
        logger.warning("NewsAPI lookup failed: %s", e, extra={"operation": "news", "query": query})
        return []


def _article_to_result(article: NewsArticle) -> SearchResult:
    return SearchResult(title=article.title, link=article.url, snippet=article.summary, display_link=article.source)


def items_from_results(
    ctx: EnrichmentContext,
    results: Sequence[SearchResult],
    related_companies: Sequence[str] = (),
    known_dates: Optional[Dict[str, str]] = None,
) -> List[NewsItem]:
    """
    Regex fallback: one item per search result. The date is the publish date
    known for the URL, else one found in the snippet, else today.
    """
    known_dates = known_dates or {}
    today = ctx.today().isoformat()
    items: List[NewsItem] = []
    for r in results:
        title = clean_search_title(r.title, r.snippet)
        if not title:
            continue
        date_match = _ISO_DATE_RE.search(r.snippet or "")
        items.append(
            NewsItem(
                id=news_item_id(title, r.link),
                title=title,
                source=resolve_source_name(r.link, r.display_link, ctx.sources),
                date=known_dates.get(r.link) or (date_match.group(1) if date_match else today),
                summary=truncate_text(r.snippet or "", 400, "..."),
                url=r.link or "#",
                related_companies=list(related_companies),
            )
        )
    return items


def finalize_news(items: Iterable[NewsItem], limit: int = MAX_NEWS_ITEMS) -> List[NewsItem]:
    """Drop noise, dedupe, derive source_type, newest first."""
    kept = [i for i in items if not is_irrelevant_news(i.title, i.summary, i.url if i.url != "#" else None)]
    merged = merge_news([], kept)
    typed = [i.model_copy(update={"source_type": classify_news_source_type(i)}) for i in merged]
    typed.sort(key=lambda i: i.date, reverse=True)
    return typed[:limit]


async def _collect_news(
    ctx: EnrichmentContext,
    operation: str,
    topic: str,
    queries: Sequence[SearchQuery],
    news_api_query: str,
    related_companies: Sequence[str] = (),
    focus_companies: Sequence[str] = (),
    feedback: str = "",
) -> List[NewsItem]:
    response = await run_searches(ctx.search, queries)
    articles = await _news_api_articles(ctx, news_api_query)

    candidates = list(response.results) + [_article_to_result(a) for a in articles]
    candidates = [r for r in candidates if not is_irrelevant_news(r.title, r.snippet, r.link or None)]
    candidates = sort_trusted_first(candidates, ctx.sources)
    if not candidates:
        logger.info("No news candidates", extra={"operation": operation, "query": topic})
        return []

    items: List[NewsItem] = []
    ai_text = await ask_ai(
        ctx,
        build_news_prompt(topic, format_results(candidates, ctx), focus_companies, feedback),
        operation,
        temperature=0.3,
    )
    if ai_text:
        body = extract_labeled_section(ai_text, NEWS_SECTION)
        items = parse_news_lines((body if body is not None else ai_text).splitlines(), related_companies)
    if not items:
        published = {a.url: a.date for a in articles if a.date}
        items = items_from_results(ctx, candidates, related_companies, published)

    news = finalize_news(items)
    logger.info("Collected %d news items", len(news), extra={"operation": operation, "query": topic})
    return news


async def fetch_industry_news(ctx: EnrichmentContext, directory_companies: Sequence[str] = ()) -> List[NewsItem]:
    """Ecosystem headlines, biased toward the companies the directory tracks."""
    site_clause = build_site_clause(ctx.sources, rng=ctx.rng)
    queries = [
        SearchQuery(f"stablecoin partnership OR launch OR regulation {site_clause}".strip(), date_restrict="w2", sort="date"),
        SearchQuery("stablecoin payments bank tokenized deposits news", date_restrict="w2", sort="date"),
    ]
    focus = list(directory_companies)[:10]
    if focus:
        names = " OR ".join(f'"{n}"' for n in focus[:5])
        queries.append(SearchQuery(f"({names}) stablecoin", date_restrict="w2", sort="date"))
    return await _collect_news(
        ctx,
        "fetch_industry_news",
        "Stablecoin and digital asset industry",
        queries,
        "stablecoin AND (partnership OR bank OR payments)",
        focus_companies=list(directory_companies),
    )


async def scan_company_news(ctx: EnrichmentContext, company_name: str, vote_feedback: str = "") -> List[NewsItem]:
    """Recent strategic news about one company; reader votes steer the prompt."""
    site_clause = build_site_clause(ctx.sources, rng=ctx.rng)
    queries = [
        SearchQuery(f'"{company_name}" {site_clause}'.strip(), date_restrict="m1", sort="date"),
        SearchQuery(f'"{company_name}" announces OR partnership OR launches', date_restrict="m1", sort="date"),
    ]
    return await _collect_news(
        ctx,
        "scan_company_news",
        company_name,
        queries,
        f'"{company_name}"',
        related_companies=[company_name],
        focus_companies=[company_name],
        feedback=vote_feedback,
    )


async def scan_investor_news(
    ctx: EnrichmentContext,
    investor_name: str,
    portfolio_names: Sequence[str] = (),
) -> List[NewsItem]:
    """News about an investor's deals and its portfolio companies."""
    queries = [SearchQuery(f'"{investor_name}" invests OR leads OR portfolio', date_restrict="m1", sort="date")]
    portfolio = list(portfolio_names)[:5]
    if portfolio:
        names = " OR ".join(f'"{n}"' for n in portfolio)
        queries.append(SearchQuery(f"({names}) funding OR partnership", date_restrict="m1", sort="date"))
    return await _collect_news(
        ctx,
        "scan_investor_news",
        f"{investor_name} and its portfolio",
        queries,
        f'"{investor_name}"',
        related_companies=[investor_name],
        focus_companies=[investor_name, *portfolio_names],
    )


# ---------------------------------------------------------------------------
# Mentions
# ---------------------------------------------------------------------------


def mentions_by_name(content: str, known_names: Iterable[str]) -> List[str]:
    """Known names that appear as whole words in the content."""
    found: List[str] = []
    for name in known_names:
        name = (name or "").strip()
        if len(name) < 2:
            continue
        if re.search(r"(?<!\w)" + re.escape(name) + r"(?!\w)", content, re.IGNORECASE):
            found.append(name)
    return found


async def analyze_news_for_companies(
    ctx: EnrichmentContext,
    content: str,
    known_names: Sequence[str],
) -> NewsMentions:
    known_lower = {n.lower(): n for n in known_names if n}
    regex_mentions = mentions_by_name(content, known_names)

    ai_text = await ask_ai(
        ctx, build_news_mentions_prompt(truncate_text(content, 8000), known_names), "analyze_news_for_companies"
    )
    parsed: Optional[dict] = None
    if ai_text:
        try:
            parsed = parse_block(ai_text, MENTION_SECTIONS)
        except ParseError as e:
            logger.info("Mentions block not parseable: %s", e, extra={"operation": "analyze_news_for_companies"})

    mentioned = list(regex_mentions)
    summary = ""
    if parsed:
        for raw in re.split(r"\s*[,;\n]\s*", parsed.get("COMPANIES", "")):
            canonical = known_lower.get(raw.strip(" -*.").lower())
            if canonical and canonical not in mentioned:
                mentioned.append(canonical)
        summary = (parsed.get("SUMMARY") or "").strip()

    if not summary:
        summary = truncate_text(" ".join(content.split()), 300, "...")
    return NewsMentions(mentioned_companies=mentioned, summary=summary)
