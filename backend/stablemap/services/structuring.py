"""
AI-assisted structuring: prompt builders and block parsers.

Every prompt asks the model for a small fixed-format block such as

    DESCRIPTION: ...
    ---
    PARTNERS:
    - Visa | Fortune500Global | USDC settlement on VisaNet
    ---
    WEBSITE: https://circle.com

Parsing is label-anchored first (`^PARTNERS:` anywhere in the text, in any
order). When a label is missing the parser falls back to the section's
positional slot between `---` separators. Each line parser skips malformed
lines instead of rejecting the whole block.
"""
from __future__ import annotations

import hashlib
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.errors import ParseError
from ..schemas.directory import (
    Category,
    FundingInfo,
    JobAnalysis,
    NewsItem,
    Partner,
    PortfolioCompany,
)
from .extraction import classify_partner_type
from .normalizers import format_financial_amount, sanitize_website

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Block parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Section:
    label: str
    aliases: tuple[str, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return (self.label,) + self.aliases


_SEPARATOR_RE = re.compile(r"^\s*-{3,}\s*$", re.MULTILINE)
_ANY_LABEL_RE = re.compile(r"^\s*\**([A-Z][A-Z _/]{1,30})\**\s*:", re.MULTILINE)


def _label_re(name: str) -> re.Pattern[str]:
    escaped = re.escape(name).replace(r"\ ", r"[ _]")
    return re.compile(rf"^\s*[#*]*\s*{escaped}\s*\**\s*:[ \t]*", re.IGNORECASE | re.MULTILINE)


def extract_labeled_section(text: str, section: Section) -> Optional[str]:
    """
    Body of `section` located by its label, up to the next label line or
    `---` separator. None when the label does not appear.
    """
    text = text or ""
    for name in section.names:
        match = _label_re(name).search(text)
        if not match:
            continue
        rest = text[match.end():]
        ends = [m.start() for m in (_SEPARATOR_RE.search(rest), _ANY_LABEL_RE.search(rest)) if m]
        body = rest[: min(ends)] if ends else rest
        return body.strip()
    return None


def split_positional(text: str) -> List[str]:
    return [part.strip() for part in _SEPARATOR_RE.split(text or "")]


_SLOT_LABEL_RE = re.compile(r"^\s*[#*]*\s*([A-Za-z][A-Za-z _/]{1,30}?)\s*\**\s*:(?!//)[ \t]*")


def _label_key(name: str) -> str:
    return re.sub(r"[ _]+", "_", name.strip().upper())


def extract_positional_section(text: str, index: int, known_labels: Iterable[str] = ()) -> Optional[str]:
    """
    Slot `index` of the `---`-separated block, with any leading label removed.

    A slot that opens with one of `known_labels` belongs to that section, so
    it is never handed to another one; None is returned instead.
    """
    parts = split_positional(text)
    if index >= len(parts):
        return None
    slot = parts[index]
    label = _SLOT_LABEL_RE.match(slot)
    if label and _label_key(label.group(1)) in {_label_key(k) for k in known_labels}:
        return None
    body = slot[label.end():] if label else slot
    body = body.strip()
    return body or None


def parse_block(text: str, sections: Sequence[Section]) -> Dict[str, str]:
    """
    Map of section label -> body. Labelled extraction wins; positional slot
    fills sections whose label is missing, as long as that slot is not
    labelled for some other section. Raises ParseError when nothing at all
    could be recovered.
    """
    if not text or not text.strip():
        raise ParseError("empty AI response")

    parsed: Dict[str, str] = {}
    has_separators = len(split_positional(text)) > 1
    known_labels = [name for section in sections for name in section.names]
    for index, section in enumerate(sections):
        body = extract_labeled_section(text, section)
        if body is None and has_separators:
            body = extract_positional_section(text, index, known_labels)
        if body:
            parsed[section.label] = body

    if not parsed:
        raise ParseError("no recognisable sections in AI response")
    return parsed


# ---------------------------------------------------------------------------
# Line hygiene
# ---------------------------------------------------------------------------

_BULLET_PREFIX_RE = re.compile(r"^\s*(?:[-*•·]+|\d+[.)])\s*")
_MARKDOWN_ONLY_RE = re.compile(
    r"^\s*(#{1,6}\s|[-=*_]{3,}\s*$|```|\*\*[^*]+\*\*:?\s*$|__[^_]+__:?\s*$|>\s)"
)
EXECUTIVE_RE = re.compile(
    r"\b(ceo|cfo|cto|coo|cmo|founder|co-founder|cofounder|chief [a-z]+ officer|president|chairman|chairwoman"
    r"|managing director|general counsel|head of)\b",
    re.IGNORECASE,
)
EMPTY_VALUES = {"", "none", "n/a", "na", "unknown", "not disclosed", "not available", "not found", "-", "null"}

DUPLICATE_OVERLAP = 0.7


def _word_set(line: str) -> set[str]:
    return set(re.findall(r"[a-z0-9]+", line.lower()))


def _overlap(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def clean_bullets(lines: Iterable[str], drop_executives: bool = True) -> List[str]:
    """
    Strip bullet markers and drop lines that are empty, pure markdown,
    mention named executives, or near-duplicate an earlier bullet.
    """
    kept: List[str] = []
    kept_words: List[set[str]] = []
    for raw in lines:
        if raw is None or _MARKDOWN_ONLY_RE.match(raw):
            continue
        line = _BULLET_PREFIX_RE.sub("", raw).replace("**", "").strip()
        if line.lower().strip(".") in EMPTY_VALUES:
            continue
        if drop_executives and EXECUTIVE_RE.search(line):
            continue
        words = _word_set(line)
        if any(line.lower() == k.lower() for k in kept):
            continue
        if len(line.split()) > 3 and any(_overlap(words, seen) > DUPLICATE_OVERLAP for seen in kept_words):
            continue
        kept.append(line)
        kept_words.append(words)
    return kept


def _lines(body: Optional[str]) -> List[str]:
    return clean_bullets((body or "").splitlines())


def _value(body: Optional[str]) -> Optional[str]:
    if body is None:
        return None
    value = " ".join(body.split()).strip().strip('"')
    return None if value.lower().strip(".") in EMPTY_VALUES else value


def _split_fields(line: str) -> List[str]:
    return [f.strip() for f in line.split("|")]


MAX_NAME_WORDS = 8
_PROSE_OPENER_RE = re.compile(
    r"^(i|i'm|i am|we|sorry|unfortunately|no|there|based on|the sources|none of|it|this|these|as an)(?=[\s,.:;!]|$)",
    re.IGNORECASE,
)
_NAME_CONNECTORS = {"of", "and", "the", "de", "du", "la", "le", "for", "&", "y", "van", "von", "der"}


def looks_like_name(name: str) -> bool:
    """
    True for a short proper name such as "Bank of Ghana" or "dYdX"; False for
    sentences the model wrote instead of a record ("I could not find ...").
    """
    name = (name or "").strip()
    if not name or len(name) > 80 or name.lower().strip(".") in EMPTY_VALUES:
        return False
    words = name.split()
    if len(words) > MAX_NAME_WORDS or _PROSE_OPENER_RE.match(name):
        return False
    lowercase = [w for w in words[1:] if w[0].islower() and w.lower() not in _NAME_CONNECTORS]
    return len(lowercase) < 2


# ---------------------------------------------------------------------------
# Line parsers
# ---------------------------------------------------------------------------


def normalize_partner_type(raw: str, name: str, context: str = "") -> str:
    lowered = (raw or "").lower()
    if "invest" in lowered or "backer" in lowered or "vc" == lowered:
        return "Investor"
    if "fortune" in lowered or "enterprise" in lowered or "traditional" in lowered or "global" in lowered:
        return "Fortune500Global"
    if "crypto" in lowered or "native" in lowered or "web3" in lowered:
        return "CryptoNative"
    return classify_partner_type(name, context)


def parse_partner_lines(lines: Iterable[str], company_name: str = "") -> List[Partner]:
    """
    `Name | Type | Description [| YYYY-MM-DD]` per line; `Name - description`
    and `Name: description` are accepted too. Lines whose name reads like a
    sentence are skipped.
    """
    partners: List[Partner] = []
    seen: set[tuple[str, str]] = set()
    own = (company_name or "").lower().strip()

    for line in clean_bullets(lines):
        if "|" in line:
            fields = _split_fields(line)
        else:
            fields = [f.strip() for f in re.split(r"\s+[-–—]\s+|:\s+", line, maxsplit=1)]
            fields = [fields[0], "", fields[1] if len(fields) > 1 else ""]

        name = fields[0].strip(" .\"'")
        if not looks_like_name(name):
            continue
        if own and (name.lower() == own or name.lower() in own or own in name.lower()):
            continue

        description = fields[2] if len(fields) > 2 else ""
        date = fields[3] if len(fields) > 3 and re.match(r"^\d{4}(-\d{2}){0,2}$", fields[3]) else None
        partner_type = normalize_partner_type(fields[1] if len(fields) > 1 else "", name, description)

        key = (name.lower(), partner_type)
        if key in seen:
            continue
        seen.add(key)
        try:
            partners.append(Partner(name=name, type=partner_type, description=description, date=date))
        except ValueError:
            logger.debug("Skipping malformed partner line", extra={"operation": "parse_partner_lines"})
    return partners


def normalize_department(raw: str, title: str = "") -> str:
    text = f"{raw or ''} {title or ''}".lower()
    if "partnership" in text or "alliance" in text or "ecosystem" in text:
        return "Partnerships"
    if "business dev" in text or re.search(r"\bbd\b|\bbdr\b|\bsales\b|account executive", text):
        return "Business Dev"
    if "customer success" in text or "account manag" in text or "client success" in text:
        return "Customer Success"
    if "strategy" in text or "strategic" in text or "corporate development" in text:
        return "Strategy"
    return "Other"


def _normalize_job_type(raw: Optional[str]) -> Optional[str]:
    lowered = (raw or "").lower()
    if "contract" in lowered or "freelance" in lowered:
        return "Contract"
    if "remote" in lowered:
        return "Remote"
    if "full" in lowered or "permanent" in lowered:
        return "Full-time"
    return None


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in re.split(r"\s*;\s*|\s*\n\s*", value) if v.strip()]


JOB_SECTIONS = (
    Section("COMPANY", ("COMPANY NAME",)),
    Section("TITLE", ("JOB TITLE", "ROLE")),
    Section("LOCATIONS", ("LOCATION",)),
    Section("DEPARTMENT"),
    Section("SALARY", ("COMPENSATION",)),
    Section("TYPE", ("EMPLOYMENT TYPE",)),
    Section("DESCRIPTION", ("SUMMARY",)),
    Section("REQUIREMENTS", ("QUALIFICATIONS",)),
    Section("BENEFITS", ("PERKS",)),
)


def parse_job_block(text: str) -> JobAnalysis:
    parsed = parse_block(text, JOB_SECTIONS)
    title = _value(parsed.get("TITLE")) or ""
    locations = _split_list(_value(parsed.get("LOCATIONS")))
    return JobAnalysis(
        company_name=_value(parsed.get("COMPANY")) or "",
        job_title=title,
        locations=locations or ["Remote"],
        department=normalize_department(parsed.get("DEPARTMENT", ""), title),
        salary=_value(parsed.get("SALARY")),
        description=_value(parsed.get("DESCRIPTION")) or "",
        requirements=_lines(parsed.get("REQUIREMENTS")),
        benefits=_lines(parsed.get("BENEFITS")),
        type=_normalize_job_type(parsed.get("TYPE")),
    )


def parse_job_lines(lines: Iterable[str]) -> List[dict]:
    """
    `Title | Department | Location; Location | YYYY-MM-DD | URL | Salary`.

    Returns plain dicts; the caller assigns ids and builds Job records.
    """
    jobs: List[dict] = []
    for line in clean_bullets(lines, drop_executives=False):
        fields = _split_fields(line)
        title = fields[0].strip(" .\"'")
        if not title or len(fields) < 2 or len(title) > 120:
            continue
        posted = fields[3] if len(fields) > 3 and re.match(r"^\d{4}-\d{2}-\d{2}$", fields[3]) else None
        url = fields[4] if len(fields) > 4 and fields[4].lower().startswith("http") else None
        salary = _value(fields[5]) if len(fields) > 5 else None
        jobs.append(
            {
                "title": title,
                "department": normalize_department(fields[1], title),
                "locations": _split_list(fields[2] if len(fields) > 2 else "") or ["Remote"],
                "posted_date": posted,
                "url": url,
                "salary": salary,
            }
        )
    return jobs


FUNDING_SECTIONS = (
    Section("TOTAL_RAISED", ("TOTAL RAISED", "RAISED")),
    Section("VALUATION"),
    Section("LAST_ROUND", ("LAST ROUND", "ROUND")),
    Section("LAST_ROUND_DATE", ("LAST ROUND DATE", "ROUND DATE", "DATE")),
    Section("INVESTORS"),
)


def parse_funding_block(text: str) -> Optional[FundingInfo]:
    parsed = parse_block(text, FUNDING_SECTIONS)
    raised = _value(parsed.get("TOTAL_RAISED"))
    valuation = _value(parsed.get("VALUATION"))
    investors_raw = _value(parsed.get("INVESTORS"))
    investors = [
        i.strip(" .")
        for i in re.split(r"\s*[,;\n]\s*", investors_raw or "")
        if i.strip(" .") and i.strip(" .").lower() not in EMPTY_VALUES
    ]
    info = FundingInfo(
        total_raised=format_financial_amount(raised) if raised else None,
        valuation=format_financial_amount(valuation) if valuation else None,
        last_round=_value(parsed.get("LAST_ROUND")),
        last_round_date=_value(parsed.get("LAST_ROUND_DATE")),
        investors=investors,
    )
    return None if info.is_empty() else info


def news_item_id(title: str, url: str = "") -> str:
    digest = hashlib.sha1(f"{title.strip().lower()}|{url.strip()}".encode("utf-8")).hexdigest()
    return f"news-{digest[:12]}"


def parse_news_lines(lines: Iterable[str], related_companies: Sequence[str] = ()) -> List[NewsItem]:
    """`Title | Source | YYYY-MM-DD | Summary | URL` per line."""
    items: List[NewsItem] = []
    for line in clean_bullets(lines):
        fields = _split_fields(line)
        if len(fields) < 4 or not fields[0]:
            continue
        title, source, date, summary = fields[:4]
        if not re.match(r"^\d{4}-\d{2}-\d{2}$", date):
            continue
        url = fields[4] if len(fields) > 4 and fields[4].lower().startswith("http") else "#"
        items.append(
            NewsItem(
                id=news_item_id(title, url),
                title=title,
                source=source or "Web",
                date=date,
                summary=summary,
                url=url,
                related_companies=list(related_companies),
            )
        )
    return items


_CATEGORY_ALIASES = {
    "ISSUER": Category.ISSUER,
    "INFRA": Category.INFRASTRUCTURE,
    "WALLET": Category.WALLET,
    "PAY": Category.PAYMENTS,
    "DEFI": Category.DEFI,
    "DECENTRAL": Category.DEFI,
    "CUSTODY": Category.CUSTODY,
    "CENTRAL": Category.CENTRAL_BANKS,
    "BANK": Category.BANKS,
    "VC": Category.VC,
    "VENTURE": Category.VC,
    "CONSULT": Category.CONSULTANCY,
}


def map_category(raw: str) -> Optional[Category]:
    up = (raw or "").upper()
    for needle, category in _CATEGORY_ALIASES.items():
        if needle in up:
            return category
    return None


def parse_portfolio_lines(lines: Iterable[str], exclude_names: Iterable[str] = ()) -> List[PortfolioCompany]:
    """`Name | Category | Description | Funding stage | Investment date` per line."""
    excluded = {n.lower().strip() for n in exclude_names if n}
    out: List[PortfolioCompany] = []
    seen: set[str] = set()
    for line in clean_bullets(lines):
        fields = _split_fields(line)
        name = fields[0].strip(" .\"'")
        if not looks_like_name(name) or name.lower() in excluded or name.lower() in seen:
            continue
        category = map_category(fields[1]) if len(fields) > 1 else None
        seen.add(name.lower())
        out.append(
            PortfolioCompany(
                name=name,
                category=(category or Category.INFRASTRUCTURE).value,
                description=fields[2] if len(fields) > 2 else "",
                funding_stage=_value(fields[3]) if len(fields) > 3 else None,
                investment_date=_value(fields[4]) if len(fields) > 4 else None,
            )
        )
    return out


def parse_named_lines(lines: Iterable[str]) -> List[tuple[str, str, str]]:
    """`Name | Country | Description` triples; used by discovery scans."""
    out: List[tuple[str, str, str]] = []
    for line in clean_bullets(lines):
        fields = _split_fields(line) + ["", ""]
        name = fields[0].strip(" .\"'")
        if looks_like_name(name):
            out.append((name, fields[1], fields[2]))
    return out


# ---------------------------------------------------------------------------
# Enrichment block
# ---------------------------------------------------------------------------

ENRICHMENT_SECTIONS = (
    Section("DESCRIPTION", ("OVERVIEW", "SUMMARY")),
    Section("PARTNERS", ("PARTNERSHIPS",)),
    Section("WEBSITE", ("URL", "HOMEPAGE")),
    Section("HEADQUARTERS", ("HQ", "LOCATION")),
)


@dataclass
class StructuredEnrichment:
    description: str
    partners: List[Partner]
    website: str
    headquarters: Optional[str]


def parse_enrichment_block(text: str, company_name: str) -> StructuredEnrichment:
    parsed = parse_block(text, ENRICHMENT_SECTIONS)
    description = " ".join(_lines(parsed.get("DESCRIPTION")))
    if not description:
        raise ParseError("enrichment block has no description")
    return StructuredEnrichment(
        description=description,
        partners=parse_partner_lines((parsed.get("PARTNERS") or "").splitlines(), company_name),
        website=sanitize_website(_value(parsed.get("WEBSITE")) or ""),
        headquarters=_value(parsed.get("HEADQUARTERS")),
    )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a business intelligence analyst covering the stablecoin, digital asset and enterprise "
    "blockchain ecosystem. Answer only from the provided sources. Use exactly the requested block "
    "format: plain text, one label per section, sections separated by a line containing ---. "
    "Do not name individual executives. Write NONE for anything the sources do not state."
)


# Continuation lines carry the template margin so textwrap.dedent removes it.
_MARGIN = " " * 8


def _sources(context: str) -> str:
    body = context.strip() or "(no sources found)"
    return body.replace("\n", "\n" + _MARGIN)


def build_enrichment_prompt(company_name: str, context: str) -> str:
    return textwrap.dedent(
        f"""
        Company: {company_name}

        Sources:
        {_sources(context)}

        Using only the sources above, describe {company_name}'s business and its partnerships.

        DESCRIPTION: 2-3 sentence overview of what the company does
        ---
        PARTNERS:
        - Partner name | Fortune500Global or CryptoNative or Investor | one-line description of the partnership | YYYY-MM-DD if known
        ---
        WEBSITE: official URL
        ---
        HEADQUARTERS: City, Country
        """
    ).strip()


def build_job_listing_prompt(company_name: str, context: str) -> str:
    return textwrap.dedent(
        f"""
        Company: {company_name}

        Search results for open roles:
        {_sources(context)}

        List only roles that appear in the results, in the Strategy, Business Development,
        Partnerships or Customer Success teams. One line per role:

        JOBS:
        - Title | Strategy or Customer Success or Business Dev or Partnerships or Other | Location; Location | YYYY-MM-DD | URL | Salary or NONE
        """
    ).strip()


def build_job_page_prompt(url: str, page_text: str) -> str:
    return textwrap.dedent(
        f"""
        Job posting from {url}:

        {_sources(page_text)}

        Extract the posting details.

        COMPANY: hiring company
        ---
        TITLE: job title
        ---
        LOCATIONS: Location; Location
        ---
        DEPARTMENT: Strategy, Customer Success, Business Dev, Partnerships or Other
        ---
        SALARY: range or NONE
        ---
        TYPE: Full-time, Contract or Remote
        ---
        DESCRIPTION: 2 sentence summary
        ---
        REQUIREMENTS:
        - requirement
        ---
        BENEFITS:
        - benefit
        """
    ).strip()


def build_funding_prompt(company_name: str, context: str) -> str:
    return textwrap.dedent(
        f"""
        Company: {company_name}

        Sources:
        {_sources(context)}

        Summarise {company_name}'s funding history.

        TOTAL_RAISED: total amount raised, e.g. $120M
        ---
        VALUATION: latest valuation or NONE
        ---
        LAST_ROUND: e.g. Series B
        ---
        LAST_ROUND_DATE: YYYY-MM or NONE
        ---
        INVESTORS: comma-separated investor names
        """
    ).strip()


def build_news_prompt(topic: str, context: str, focus_companies: Sequence[str] = (), feedback: str = "") -> str:
    focus = ", ".join(focus_companies[:30]) or "none"
    note = " ".join(feedback.split())
    feedback_line = f"Reader feedback on earlier results: {note}" if note else ""
    return textwrap.dedent(
        f"""
        Topic: {topic}
        Companies of interest: {focus}
        {feedback_line}
        Sources:
        {_sources(context)}

        Pick the strategic developments (partnerships, regulation, product launches, funding).
        Skip price commentary, token launches and explainers. One line per item:

        NEWS:
        - Headline | Publication | YYYY-MM-DD | 2 sentence summary | URL
        """
    ).strip()


def build_portfolio_prompt(investor_name: str, context: str, existing_names: Sequence[str] = ()) -> str:
    known = ", ".join(existing_names[:50]) or "none"
    return textwrap.dedent(
        f"""
        Investor: {investor_name}
        Already tracked (exclude): {known}

        Sources:
        {_sources(context)}

        List portfolio companies of {investor_name} that work on stablecoins, payments or digital
        asset infrastructure. One line per company:

        PORTFOLIO:
        - Name | Issuer, Infrastructure, Wallet, Payments, DeFi or Custody | one-line description | funding stage | investment date
        """
    ).strip()


def build_central_bank_prompt(context: str, existing_names: Sequence[str] = ()) -> str:
    known = ", ".join(existing_names[:50]) or "none"
    return textwrap.dedent(
        f"""
        Already tracked (exclude): {known}

        Sources:
        {_sources(context)}

        List central banks or monetary authorities running CBDC, stablecoin or tokenized-deposit
        work that the sources mention. One line per institution:

        CENTRAL_BANKS:
        - Official name | Country | one-line description of the initiative
        """
    ).strip()


def build_partnership_scan_prompt(company_name: str, context: str, existing_partners: Sequence[str]) -> str:
    known = ", ".join(existing_partners) or "none"
    return textwrap.dedent(
        f"""
        Company: {company_name}
        Known partners (exclude): {known}

        Sources:
        {_sources(context)}

        List new partnerships of {company_name} announced in the last 12 months.

        PARTNERS:
        - Partner name | Fortune500Global or CryptoNative or Investor | what the partnership involves | YYYY-MM-DD
        """
    ).strip()


def build_news_mentions_prompt(content: str, known_names: Sequence[str]) -> str:
    known = ", ".join(known_names[:200]) or "none"
    return textwrap.dedent(
        f"""
        Directory companies: {known}

        Article:
        {_sources(content)}

        COMPANIES: comma-separated directory companies the article mentions
        ---
        SUMMARY: 2 sentence summary of the article
        """
    ).strip()


def build_recommendation_prompt(context: str, existing_names: Sequence[str], limit: int) -> str:
    known = ", ".join(existing_names[:50]) or "none"
    return textwrap.dedent(
        f"""
        Tracked companies: {known}

        Sources:
        {_sources(context)}

        Name up to {limit} significant companies from the sources that are missing from the tracked list.

        MISSING:
        - Company name | one sentence on why it should be tracked
        """
    ).strip()
