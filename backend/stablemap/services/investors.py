"""
Investor portfolio lookups, from web search or from the investor's own
portfolio page.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..schemas.directory import Category, PortfolioCompany
from .classification import categorize_from_text
from .connectors import SearchQuery, run_searches
from .context import EnrichmentContext, ask_ai, combined_text, format_results
from .extraction import extract_company_names_from_text
from .normalizers import truncate_text
from .structuring import Section, build_portfolio_prompt, extract_labeled_section, parse_portfolio_lines

logger = logging.getLogger(__name__)

MAX_PORTFOLIO = 25
PORTFOLIO_SECTION = Section("PORTFOLIO", ("COMPANIES", "INVESTMENTS"))


def _parse_portfolio(ai_text: Optional[str], exclude: Sequence[str]) -> List[PortfolioCompany]:
    if not ai_text:
        return []
    body = extract_labeled_section(ai_text, PORTFOLIO_SECTION)
    return parse_portfolio_lines((body if body is not None else ai_text).splitlines(), exclude)


def portfolio_from_text(text: str, exclude: Sequence[str]) -> List[PortfolioCompany]:
    """Regex fallback: capitalised names, categorised by the sentence they appear in."""
    out: List[PortfolioCompany] = []
    for name in extract_company_names_from_text(text, exclude)[:MAX_PORTFOLIO]:
        categories = categorize_from_text(text, name)
        category = categories[0] if categories else Category.INFRASTRUCTURE
        out.append(PortfolioCompany(name=name, category=category.value))
    return out


async def lookup_investor_portfolio(
    ctx: EnrichmentContext,
    investor_name: str,
    existing_names: Sequence[str] = (),
) -> List[PortfolioCompany]:
    """Stablecoin / payments / digital-asset portfolio companies not already tracked."""
    exclude = [investor_name, *existing_names]
    response = await run_searches(
        ctx.search,
        [
            SearchQuery(f'"{investor_name}" portfolio stablecoin OR payments OR "digital assets"'),
            SearchQuery(f'"{investor_name}" leads OR invests OR backs round crypto', date_restrict="y2"),
        ],
    )
    if not response.results:
        logger.info("No portfolio search results", extra={"operation": "lookup_investor_portfolio", "company": investor_name})
        return []

    ai_text = await ask_ai(
        ctx,
        build_portfolio_prompt(investor_name, format_results(response.results, ctx), list(existing_names)),
        "lookup_investor_portfolio",
        temperature=0.2,
    )
    portfolio = _parse_portfolio(ai_text, exclude)
    if not portfolio:
        portfolio = portfolio_from_text(combined_text(response.results), exclude)
    return portfolio[:MAX_PORTFOLIO]


async def lookup_investor_portfolio_from_url(
    ctx: EnrichmentContext,
    url: str,
    investor_name: str,
    existing_names: Sequence[str] = (),
) -> List[PortfolioCompany]:
    """
    Read the investor's portfolio page. An unreadable page falls back to the
    search-based lookup.
    """
    page = await ctx.fetcher.fetch(url)
    if page is None or page.fetch_failed or not page.content.strip():
        logger.warning(
            "Portfolio page unreadable, falling back to search",
            extra={"operation": "lookup_investor_portfolio_from_url", "query": url},
        )
        return await lookup_investor_portfolio(ctx, investor_name, existing_names)

    exclude = [investor_name, *existing_names]
    context = f"[1] {page.title or investor_name} portfolio {url}\n{truncate_text(page.content, 12000)}"
    ai_text = await ask_ai(
        ctx,
        build_portfolio_prompt(investor_name, context, list(existing_names)),
        "lookup_investor_portfolio_from_url",
        temperature=0.2,
    )
    portfolio = _parse_portfolio(ai_text, exclude)
    if not portfolio:
        portfolio = portfolio_from_text(page.content, exclude)
    return portfolio[:MAX_PORTFOLIO]
