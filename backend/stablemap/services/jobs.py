"""
Job discovery for a company and single-posting analysis.
"""
from __future__ import annotations

import hashlib
import logging
import re
from typing import List, Optional

from ..schemas.directory import Job, JobAnalysis, SearchResult
from .connectors import SearchQuery, run_searches
from .context import EnrichmentContext, ask_ai, format_results, parse_or_none
from .directory import visible_jobs
from .normalizers import clean_search_title, truncate_text
from .structuring import (
    Section,
    build_job_listing_prompt,
    build_job_page_prompt,
    extract_labeled_section,
    normalize_department,
    parse_job_block,
    parse_job_lines,
)

logger = logging.getLogger(__name__)

MAX_JOBS = 15
MAX_PAGE_CHARS = 12000

TARGET_ROLE_RE = re.compile(
    r"\b(partnerships?|business development|bd|strategy|strategic|customer success|"
    r"account (?:executive|manager)|alliances?|ecosystem|sales)\b",
    re.IGNORECASE,
)
JOB_BOARD_TITLE_SUFFIX_RE = re.compile(r"\s*(?:[-|@]|\bat\b)\s*[^-|@]*(?:careers|jobs|lever|greenhouse|ashby|workable).*$", re.IGNORECASE)
REMOTE_RE = re.compile(r"\bremote\b", re.IGNORECASE)
SALARY_RE = re.compile(r"\$\s?\d[\d,]*(?:\.\d+)?\s*[kK]?\s*(?:-|to|–)\s*\$?\s?\d[\d,]*(?:\.\d+)?\s*[kK]?")
LOCATION_LINE_RE = re.compile(r"\b(?i:location|based in|office)\s*[:\-]?\s*([A-Z][\w .,'-]{2,60})")


def job_id(company_name: str, title: str, url: Optional[str] = None) -> str:
    digest = hashlib.sha1(f"{company_name.lower()}|{title.lower()}|{url or ''}".encode("utf-8")).hexdigest()
    return f"job-{digest[:12]}"


def _job_queries(company_name: str) -> List[SearchQuery]:
    roles = '"business development" OR partnerships OR strategy OR "customer success"'
    return [
        SearchQuery(f'"{company_name}" careers {roles}', date_restrict="m6"),
        SearchQuery(f'"{company_name}" jobs site:lever.co OR site:greenhouse.io OR site:ashbyhq.com', date_restrict="m6"),
    ]


def jobs_from_results(company_name: str, results: List[SearchResult], today: str) -> List[dict]:
    """Regex fallback: result titles that read like a target role."""
    out: List[dict] = []
    for r in results:
        title = JOB_BOARD_TITLE_SUFFIX_RE.sub("", clean_search_title(r.title, r.snippet)).strip(" -|")
        if company_name.lower() in title.lower():
            title = re.sub(re.escape(company_name), "", title, flags=re.IGNORECASE).strip(" -|@,")
        if not title or len(title) > 100 or not TARGET_ROLE_RE.search(title):
            continue
        out.append(
            {
                "title": title,
                "department": normalize_department("", title),
                "locations": ["Remote"],
                "posted_date": today,
                "url": r.link or None,
                "salary": None,
            }
        )
    return out


async def find_job_openings(ctx: EnrichmentContext, company_name: str) -> List[Job]:
    """Recent strategy / BD / partnerships / customer-success roles."""
    company_name = company_name.strip()
    response = await run_searches(ctx.search, _job_queries(company_name))
    results = response.results
    if not results:
        logger.info("No job search results", extra={"operation": "find_job_openings", "company": company_name})
        return []

    today = ctx.today().isoformat()
    rows: List[dict] = []
    ai_text = await ask_ai(
        ctx, build_job_listing_prompt(company_name, format_results(results, ctx)), "find_job_openings", temperature=0.2
    )
    if ai_text:
        body = extract_labeled_section(ai_text, Section("JOBS", ("ROLES",)))
        rows = parse_job_lines((body if body is not None else ai_text).splitlines())
    if not rows:
        rows = jobs_from_results(company_name, results, today)

    jobs: List[Job] = []
    seen: set[str] = set()
    for row in rows:
        key = row["title"].lower()
        if key in seen:
            continue
        seen.add(key)
        jobs.append(
            Job(
                id=job_id(company_name, row["title"], row.get("url")),
                title=row["title"],
                department=row["department"],
                locations=row["locations"],
                posted_date=row.get("posted_date") or today,
                url=row.get("url"),
                salary=row.get("salary"),
            )
        )

    jobs = visible_jobs(jobs, ctx.today())[:MAX_JOBS]
    logger.info("Found %d job openings", len(jobs), extra={"operation": "find_job_openings", "company": company_name})
    return jobs


# ---------------------------------------------------------------------------
# Single posting
# ---------------------------------------------------------------------------


def analyze_job_text(text: str, url: str = "") -> JobAnalysis:
    """Regex-only reading of a posting: first line as title, salary range, location line."""
    lines = [l.strip() for l in text.splitlines() if l.strip()]
    title = lines[0][:120] if lines else ""
    salary_match = SALARY_RE.search(text)
    location_match = LOCATION_LINE_RE.search(text)
    locations = [location_match.group(1).strip(" .,")] if location_match else []
    if REMOTE_RE.search(text) and "Remote" not in locations:
        locations.append("Remote")
    return JobAnalysis(
        job_title=title,
        locations=locations or ["Remote"],
        department=normalize_department("", title),
        salary=salary_match.group(0) if salary_match else None,
        description=truncate_text(" ".join(lines[1:4]), 400, "..."),
        url=url,
    )


async def analyze_job_link(ctx: EnrichmentContext, url: str, pasted_text: Optional[str] = None) -> JobAnalysis:
    """
    Structured details of one posting.

    Pasted text wins over fetching. When the page cannot be read and nothing
    was pasted the result carries fetch_failed=True so the caller can ask
    the user to paste the posting.
    """
    url = (url or "").strip()
    text = (pasted_text or "").strip()

    if not text:
        page = await ctx.fetcher.fetch(url)
        if page is None or page.fetch_failed or not page.content.strip():
            logger.warning("Job page unreadable", extra={"operation": "analyze_job_link", "query": url})
            return JobAnalysis(url=url, fetch_failed=True)
        text = page.content

    text = truncate_text(text, MAX_PAGE_CHARS)
    ai_text = await ask_ai(ctx, build_job_page_prompt(url, text), "analyze_job_link", temperature=0.2)
    analysis = parse_or_none(parse_job_block, ai_text, "analyze_job_link")
    if analysis is None:
        analysis = analyze_job_text(text, url)
    return analysis.model_copy(update={"url": url})
