"""
Central bank hygiene for the directory: repair mis-tagged records and
discover central banks with CBDC or stablecoin programmes that are not
tracked yet.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from ..schemas.directory import Category, CentralBankScan, Company
from .classification import (
    CENTRAL_BANK_NAME_RE,
    categorize_from_text,
    is_blockchain_entity,
    is_central_bank,
)
from .connectors import SearchQuery, run_searches
from .context import EnrichmentContext, ask_ai, combined_text, format_results
from .extraction import extract_company_names_from_text
from .location import region_for_country
from .normalizers import sanitize_website
from .structuring import Section, build_central_bank_prompt, extract_labeled_section, parse_named_lines

logger = logging.getLogger(__name__)

CENTRAL_BANKING_INDUSTRY = "Central Banking"
CENTRAL_BANK_SECTION = Section("CENTRAL_BANKS", ("CENTRAL BANKS", "INSTITUTIONS"))
MAX_DISCOVERED = 10


def fix_central_bank_record(company: Company) -> Company:
    """
    Repair one record.

    Blockchains tagged as central banks collapse to [Infrastructure]. Real
    central banks carry Central Banks without Infrastructure or Banks and
    the Central Banking industry. Anything else loses a stray Central Banks
    tag. Untouched records come back unchanged.
    """
    text = company.description or ""
    tagged = Category.CENTRAL_BANKS in company.categories

    if tagged and is_blockchain_entity(text, company.name):
        return company.model_copy(update={"categories": [Category.INFRASTRUCTURE]})

    if is_central_bank(text, company.name) and (tagged or CENTRAL_BANK_NAME_RE.search(company.name)):
        kept = [c for c in company.categories if c not in (Category.INFRASTRUCTURE, Category.BANKS, Category.CENTRAL_BANKS)]
        return company.model_copy(
            update={
                "categories": [Category.CENTRAL_BANKS, *kept],
                "industry": CENTRAL_BANKING_INDUSTRY,
                "website": sanitize_website(company.website),
            }
        )

    if tagged:
        remaining = [c for c in company.categories if c != Category.CENTRAL_BANKS]
        if not remaining:
            remaining = [c for c in categorize_from_text(text, company.name) if c != Category.CENTRAL_BANKS]
        return company.model_copy(update={"categories": remaining or [Category.INFRASTRUCTURE]})

    return company


async def discover_central_banks(ctx: EnrichmentContext, existing_names: Sequence[str]) -> List[Company]:
    response = await run_searches(
        ctx.search,
        [
            SearchQuery("central bank CBDC pilot OR stablecoin framework OR tokenized deposits", date_restrict="y1"),
            SearchQuery("monetary authority digital currency project wholesale CBDC", date_restrict="y1"),
        ],
    )
    if not response.results:
        return []

    excluded = {n.lower().strip() for n in existing_names}
    ai_text = await ask_ai(
        ctx,
        build_central_bank_prompt(format_results(response.results, ctx), list(existing_names)),
        "scan_and_fix_central_banks",
        temperature=0.2,
    )

    rows: List[tuple[str, str, str]] = []
    if ai_text:
        body = extract_labeled_section(ai_text, CENTRAL_BANK_SECTION)
        rows = parse_named_lines((body if body is not None else ai_text).splitlines())
    if not rows:
        names = extract_company_names_from_text(combined_text(response.results), existing_names)
        rows = [(n, "", "") for n in names if CENTRAL_BANK_NAME_RE.search(n)]

    discovered: List[Company] = []
    for name, country, description in rows:
        if name.lower() in excluded or not is_central_bank(description, name):
            continue
        excluded.add(name.lower())
        discovered.append(
            Company.new(
                name,
                description=description,
                categories=[Category.CENTRAL_BANKS],
                industry=CENTRAL_BANKING_INDUSTRY,
                country=country or None,
                region=region_for_country(country or None),
                focus="Crypto-Second",
            )
        )
    return discovered[:MAX_DISCOVERED]


async def scan_and_fix_central_banks(ctx: EnrichmentContext, companies: Sequence[Company]) -> CentralBankScan:
    """
    `fixed` is the full directory with corrections applied; `discovered`
    holds new central banks not yet tracked.
    """
    fixed = [fix_central_bank_record(c) for c in companies]
    changed = sum(1 for before, after in zip(companies, fixed) if before != after)

    discovered = await discover_central_banks(ctx, [c.name for c in companies])
    logger.info(
        "Central bank scan: %d fixed, %d discovered",
        changed,
        len(discovered),
        extra={"operation": "scan_and_fix_central_banks"},
    )
    return CentralBankScan(fixed=fixed, discovered=discovered)
