"""
Company enrichment, partnership scans and funding lookups.

Each operation searches, runs the regex extractors over the snippets, asks
the AI layer for a structured block, and keeps the regex output whenever
the AI call or its parsing fails.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..schemas.directory import (
    Category,
    Company,
    CompanyEnrichment,
    CompanyRecommendation,
    FundingBatchProgress,
    FundingInfo,
    Partner,
    SearchResult,
)
from .classification import categorize_from_text, determine_focus, determine_industry
from .connectors import SearchQuery, run_searches
from .context import (
    EnrichmentContext,
    ask_ai,
    combined_text,
    format_results,
    parse_or_none,
    templated_description,
)
from .directory import merge_partners
from .extraction import (
    classify_partner_type,
    extract_acquirer,
    extract_funding_from_text,
    extract_partners_from_search,
)
from .location import extract_location_from_text, infer_country, region_for_country
from .normalizers import sanitize_website
from .sources import build_site_clause, host_of, sort_trusted_first
from .structuring import (
    build_enrichment_prompt,
    build_funding_prompt,
    build_partnership_scan_prompt,
    build_recommendation_prompt,
    clean_bullets,
    extract_labeled_section,
    looks_like_name,
    parse_enrichment_block,
    parse_funding_block,
    parse_partner_lines,
    Section,
)

logger = logging.getLogger(__name__)

DEFAULT_FUNDING_BATCH_SIZE = 5

ProgressCallback = Callable[[FundingBatchProgress], None]


def _name_stem(company_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", company_name.lower())


def guess_website(company_name: str, results: Sequence[SearchResult]) -> str:
    """First result hosted on a domain that contains the company name."""
    stem = _name_stem(company_name)
    if len(stem) < 3:
        return ""
    for r in results:
        host = host_of(r.link)
        if host and stem in host.replace("-", "").replace(".", ""):
            return sanitize_website(host)
    return ""


def _company_queries(ctx: EnrichmentContext, company_name: str, existing: Optional[Company]) -> List[SearchQuery]:
    site_clause = build_site_clause(ctx.sources, rng=ctx.rng)
    queries = [
        SearchQuery(f'"{company_name}" stablecoin OR blockchain OR "digital assets" {site_clause}'.strip()),
        SearchQuery(f'"{company_name}" company overview headquarters'),
        SearchQuery(f'"{company_name}" partners with OR partnership OR "teams up with"', date_restrict="y1"),
    ]
    if existing and existing.website:
        domain = host_of(existing.website)
        if domain:
            queries.append(SearchQuery(f'"{company_name}" about', site_search=domain, num=5))
    return queries


async def enrich_company_data(
    ctx: EnrichmentContext,
    company_name: str,
    existing: Optional[Company] = None,
) -> CompanyEnrichment:
    """
    Partial company record: description, categories, partners, website,
    location, focus, industry and any funding figures found in passing.
    """
    company_name = company_name.strip()
    response = await run_searches(ctx.search, _company_queries(ctx, company_name, existing))
    results = sort_trusted_first(response.results, ctx.sources)

    if not results and not response.model_summary:
        logger.warning("No search results for enrichment", extra={"operation": "enrich_company_data", "company": company_name})
        if existing:
            return CompanyEnrichment(description=existing.description, website=existing.website)
        return CompanyEnrichment()

    text = combined_text(results)
    if response.model_summary:
        text = f"{text}\n{response.model_summary}"

    regex_partners = extract_partners_from_search(results, company_name)
    acquirer = extract_acquirer(text, company_name)
    if acquirer and not any(p.name.lower() == acquirer.lower() for p in regex_partners):
        regex_partners.append(
            Partner(
                name=acquirer,
                type=classify_partner_type(acquirer),
                description=f"Acquired {company_name}.",
            )
        )

    ai_text = await ask_ai(ctx, build_enrichment_prompt(company_name, format_results(results, ctx)), "enrich_company_data")
    structured = parse_or_none(parse_enrichment_block, ai_text, "enrich_company_data", company_name)

    if structured:
        description = structured.description
        partners = merge_partners(structured.partners, regex_partners)
        website = structured.website
    else:
        description = (existing.description if existing and existing.description else "") or templated_description(
            company_name, results
        )
        partners = regex_partners
        website = ""

    website = website or (existing.website if existing else "") or guess_website(company_name, results)

    location = extract_location_from_text(text)
    headquarters, country = location.headquarters, location.country
    if structured and structured.headquarters:
        hq_country = infer_country(structured.headquarters)
        headquarters = structured.headquarters
        country = hq_country or country

    categories = categorize_from_text(description, company_name) or categorize_from_text(text, company_name)
    if not categories:
        categories = [Category.INFRASTRUCTURE]

    signal_text = f"{description}\n{text}"
    enrichment = CompanyEnrichment(
        description=description,
        categories=categories,
        partners=partners,
        website=website,
        headquarters=headquarters,
        country=country,
        region=region_for_country(country),
        focus=determine_focus(signal_text, company_name),
        industry=determine_industry(signal_text),
        funding=extract_funding_from_text(text),
        ai_structured=structured is not None,
    )
    logger.info(
        "Enriched company (%d partners, ai=%s)",
        len(enrichment.partners),
        enrichment.ai_structured,
        extra={"operation": "enrich_company_data", "company": company_name},
    )
    return enrichment


async def scan_for_new_partnerships(
    ctx: EnrichmentContext,
    company_name: str,
    existing_partner_names: Iterable[str] = (),
) -> List[Partner]:
    """Partnerships announced in the last year that are not already known."""
    known = {n.lower().strip() for n in existing_partner_names if n}
    site_clause = build_site_clause(ctx.sources, rng=ctx.rng)
    response = await run_searches(
        ctx.search,
        [
            SearchQuery(f'"{company_name}" partnership {site_clause}'.strip(), date_restrict="y1"),
            SearchQuery(f'"{company_name}" partners with OR collaborates with OR integrates with', date_restrict="y1"),
        ],
    )
    results = sort_trusted_first(response.results, ctx.sources)
    if not results:
        return []

    ai_text = await ask_ai(
        ctx,
        build_partnership_scan_prompt(company_name, format_results(results, ctx), sorted(known)),
        "scan_for_new_partnerships",
    )
    partners: List[Partner] = []
    if ai_text:
        body = extract_labeled_section(ai_text, Section("PARTNERS", ("PARTNERSHIPS",)))
        partners = parse_partner_lines((body if body is not None else ai_text).splitlines(), company_name)
    if not partners:
        partners = extract_partners_from_search(results, company_name)

    return [p for p in partners if p.name.lower() not in known]


# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------


async def fetch_funding(ctx: EnrichmentContext, company_name: str) -> Optional[FundingInfo]:
    response = await run_searches(
        ctx.search,
        [
            SearchQuery(f'"{company_name}" funding round raised valuation investors'),
            SearchQuery(f'"{company_name}" series OR seed OR "strategic round" led by', date_restrict="y1"),
        ],
    )
    results = sort_trusted_first(response.results, ctx.sources)
    if not results:
        return None

    regex_funding = extract_funding_from_text(combined_text(results))
    ai_text = await ask_ai(ctx, build_funding_prompt(company_name, format_results(results, ctx)), "fetch_funding")
    ai_funding = parse_or_none(parse_funding_block, ai_text, "fetch_funding")

    if regex_funding is None:
        return ai_funding
    return regex_funding.merge(ai_funding)


async def batch_fetch_funding(
    ctx: EnrichmentContext,
    companies: Sequence[Company],
    batch_size: int = DEFAULT_FUNDING_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, FundingInfo]:
    """
    Funding for each company, merged into what it already has.

    Strictly sequential, batch after batch, one company at a time; the
    progress callback fires after every company. Returns id -> merged info
    for the companies where anything was found.
    """
    batch_size = max(1, batch_size)
    total = len(companies)
    updated: Dict[str, FundingInfo] = {}
    completed = 0

    for start in range(0, total, batch_size):
        for company in companies[start : start + batch_size]:
            found = await fetch_funding(ctx, company.name)
            if found is not None and not found.is_empty():
                base = company.funding or FundingInfo()
                updated[company.id] = base.merge(found)
            completed += 1
            if on_progress:
                on_progress(
                    FundingBatchProgress(
                        completed=completed,
                        total=total,
                        company_name=company.name,
                        found=company.id in updated,
                    )
                )
        logger.info(
            "Funding batch done (%d/%d)",
            completed,
            total,
            extra={"operation": "batch_fetch_funding"},
        )

    return updated


# ---------------------------------------------------------------------------
# Directory gaps
# ---------------------------------------------------------------------------


async def recommend_missing_companies(
    ctx: EnrichmentContext,
    existing_names: Sequence[str],
    limit: int = 3,
) -> List[CompanyRecommendation]:
    """Significant ecosystem companies the directory does not track yet."""
    known = {n.lower().strip() for n in existing_names}
    response = await run_searches(
        ctx.search,
        [SearchQuery("leading stablecoin infrastructure payments custody companies", date_restrict="m3")],
    )
    if not response.results:
        return []

    prompt = build_recommendation_prompt(format_results(response.results, ctx), existing_names, limit)
    ai_text = await ask_ai(ctx, prompt, "recommend_missing_companies", temperature=0.7)
    if not ai_text:
        return []

    body = extract_labeled_section(ai_text, Section("MISSING")) or ai_text
    out: List[CompanyRecommendation] = []
    for line in clean_bullets(body.splitlines()):
        name, _, reason = line.partition("|")
        name = name.strip(" .\"'")
        if looks_like_name(name) and name.lower() not in known:
            out.append(CompanyRecommendation(name=name, reason=reason.strip()))
            known.add(name.lower())
        if len(out) >= limit:
            break
    return out
