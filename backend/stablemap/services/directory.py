"""
Directory-level helpers applied by callers when persisting enrichment output.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from ..schemas.directory import Company, Job, NewsItem, Partner, generate_company_id
from .normalizers import normalize_title_key

JOB_RETENTION_MONTHS = 6
PARTNERSHIP_NEWS_SOURCE = "Directory Intelligence"


# ---------------------------------------------------------------------------
# Partners
# ---------------------------------------------------------------------------


def merge_partners(existing: Sequence[Partner], enriched: Optional[Sequence[Partner]]) -> List[Partner]:
    """Append enriched partners whose (name, type) is not already present."""
    if not enriched:
        return list(existing or [])
    if not existing:
        return list(enriched)
    seen = {p.partner_key() for p in existing}
    merged = list(existing)
    for p in enriched:
        key = p.partner_key()
        if key not in seen:
            seen.add(key)
            merged.append(p)
    return merged


def sync_funding_investors_to_partners(company: Company) -> Company:
    """Every funding investor is also listed as an Investor partner."""
    investors = company.funding.investors if company.funding else []
    if not investors:
        return company

    known = {p.name.lower() for p in company.partners if p.type == "Investor"}
    added: List[Partner] = []
    for name in investors:
        name = name.strip()
        if not name or name.lower() in known:
            continue
        known.add(name.lower())
        added.append(Partner(name=name, type="Investor"))

    if not added:
        return company
    return company.model_copy(update={"partners": list(company.partners) + added})


def reverse_partner_type(partner: Partner, company: Company) -> str:
    """
    Type company A gets on partner B's side of the relationship.

    Investors and large enterprises see the other side as a crypto-native
    counterpart; otherwise a Crypto-Second company reads as the enterprise.
    """
    if partner.type in ("Investor", "Fortune500Global"):
        return "CryptoNative"
    return "Fortune500Global" if company.focus == "Crypto-Second" else "CryptoNative"


def ensure_bidirectional_partners(companies: Sequence[Company]) -> List[Company]:
    """
    If A lists B and B is in the directory, B lists A too. The same pair may
    be linked under several types.
    """
    by_id: Dict[str, Company] = {c.id: c.model_copy(deep=True) for c in companies}

    for company in companies:
        for partner in company.partners:
            partner_id = generate_company_id(partner.name)
            target = by_id.get(partner_id)
            if target is None or partner_id == company.id:
                continue
            reverse_type = reverse_partner_type(partner, company)
            if any(p.name.lower() == company.name.lower() and p.type == reverse_type for p in target.partners):
                continue
            target.partners.append(
                Partner(
                    name=company.name,
                    type=reverse_type,
                    description=partner.description or f"Partnership with {company.name}.",
                    date=partner.date,
                    source_url=partner.source_url,
                )
            )

    return [by_id[c.id] for c in companies if c.id in by_id]


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def _coerce_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        # Partial dates ("May 2025") land on the first of the month
        return date_parser.parse(text, default=datetime(2000, 1, 1)).date()
    except (ValueError, OverflowError):
        return None


def is_job_recent(
    posted: Union[str, date, datetime, None],
    today: Optional[date] = None,
    months: int = JOB_RETENTION_MONTHS,
) -> bool:
    """Posted within the last `months` months. Missing or unparseable dates are not recent."""
    posted_day = _coerce_date(posted)
    if posted_day is None:
        return False
    today = today or date.today()
    return posted_day >= today - relativedelta(months=months)


def visible_jobs(jobs: Iterable[Job], today: Optional[date] = None) -> List[Job]:
    """Read-time filter: recent and not dismissed. Nothing is deleted."""
    return [j for j in jobs if not j.hidden and is_job_recent(j.posted_date, today)]


def dismiss_job(job: Job, reason: Optional[str] = None) -> Job:
    return job.model_copy(update={"hidden": True, "dismiss_reason": reason})


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------


def merge_news(existing: Sequence[NewsItem], new: Iterable[NewsItem]) -> List[NewsItem]:
    """Append new items unless their id or normalised title is already present."""
    merged = list(existing)
    ids = {n.id for n in merged}
    titles = {normalize_title_key(n.title) for n in merged}
    for item in new:
        title_key = normalize_title_key(item.title)
        if item.id in ids or (title_key and title_key in titles):
            continue
        ids.add(item.id)
        titles.add(title_key)
        merged.append(item)
    return merged


def partnerships_to_news(company_name: str, partners: Iterable[Partner], today: Optional[date] = None) -> List[NewsItem]:
    safe_name = re.sub(r"[^a-zA-Z0-9]", "", company_name)
    fallback_date = (today or date.today()).isoformat()
    items: List[NewsItem] = []
    for p in partners:
        safe_partner = re.sub(r"[^a-zA-Z0-9]", "", p.name)
        items.append(
            NewsItem(
                id=f"ptnr-{safe_name}-{safe_partner}",
                title=f"{company_name} Partnership: {p.name}",
                source=PARTNERSHIP_NEWS_SOURCE,
                date=p.date or fallback_date,
                summary=p.description,
                url=p.source_url or "#",
                related_companies=[company_name, p.name],
                source_type="partnership",
            )
        )
    return items
