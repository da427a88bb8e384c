"""
Regex / heuristic entity extraction from search snippets.

These extractors are the fallback path whenever AI structuring fails, and
the primary source of partners and funding figures for the lighter scans.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Set

from ..schemas.directory import FundingInfo, Partner, SearchResult
from .classification import determine_industry, is_bank
from .location import infer_country, region_for_country
from .normalizers import format_financial_amount

MAX_PARTNERS = 10

# ---------------------------------------------------------------------------
# Funding
# ---------------------------------------------------------------------------

_MONEY = r"\$\s?\d[\d,]*(?:\.\d+)?\s*(?:billion|million|thousand|bn|b|m|k)?\b"

RAISED_RE = re.compile(
    r"\b(?:raised|raises|raising|secured|secures|closed|closes|announced|lands|landed|acquired by [\w&.' -]{1,40}? for|funding of|investment of)"
    r"\s+(?:an?\s+|a total of\s+|over\s+|more than\s+|nearly\s+|approximately\s+|about\s+)?(?:additional\s+|new\s+)?"
    rf"({_MONEY})",
    re.IGNORECASE,
)
ROUND_RE = re.compile(
    r"\b(pre-seed|seed|series [a-h]\+?(?:[- ]\d)?|strategic round|growth round|bridge round|private placement)\b",
    re.IGNORECASE,
)
VALUATION_RE = re.compile(
    r"\bvalu(?:ed|ation)(?:\s+(?:of|at))?\s+(?:about\s+|approximately\s+|roughly\s+|over\s+|more than\s+|nearly\s+)?"
    rf"({_MONEY})",
    re.IGNORECASE,
)
LED_BY_RE = re.compile(
    r"\b(?:led by|co-led by|participation from|backed by)\s+([A-Z][\w&.'-]*(?:\s+[A-Z][\w&.'-]*){0,3}"
    r"(?:\s*(?:,|and)\s+(?:[A-Z][\w&.'-]*(?:\s+[A-Z][\w&.'-]*){0,3}))*)"
)


def _format_round(raw: str) -> str:
    words = raw.strip().split()
    out = []
    for w in words:
        out.append(w.upper() if len(w) <= 2 and w[0].isalpha() and w.lower() not in ("of",) else w.capitalize())
    return " ".join(out)


def _split_investor_list(raw: str) -> List[str]:
    parts = re.split(r"\s*,\s*|\s+and\s+", raw)
    return [p.strip() for p in parts if p.strip() and p.strip().lower() not in STOP_NAMES]


def extract_funding_from_text(text: str) -> Optional[FundingInfo]:
    """
    Raised amount, round label and valuation from free text.

    Each capture is independent; None only when nothing matched.
    """
    text = text or ""
    raised = RAISED_RE.search(text)
    round_match = ROUND_RE.search(text)
    valuation = VALUATION_RE.search(text)
    led_by = LED_BY_RE.search(text)

    if not any([raised, round_match, valuation, led_by]):
        return None

    return FundingInfo(
        total_raised=format_financial_amount(raised.group(1)) if raised else None,
        last_round=_format_round(round_match.group(1)) if round_match else None,
        valuation=format_financial_amount(valuation.group(1)) if valuation else None,
        investors=_split_investor_list(led_by.group(1)) if led_by else [],
    )


# ---------------------------------------------------------------------------
# Partners
# ---------------------------------------------------------------------------

_NAME = r"([A-Z][\w&.'-]*(?:\s+[A-Z0-9][\w&.'-]*){0,4})"

PARTNER_PATTERNS = (
    # "... partnered with Visa", "... teams up with Visa", "... acquired by Stripe"
    re.compile(
        r"(?i:\b(?:partner(?:s|ed|ing|ship)?\s+with|teams?\s+up\s+with|teamed\s+up\s+with|joins?\s+forces\s+with"
        r"|joined\s+forces\s+with|collaborat(?:es|ed|ing|ion)\s+with|integrat(?:es|ed|ion)\s+with|acquired\s+by)\s+)"
        + _NAME,
    ),
    # "Visa partnered with ...", "Visa and Circle partner ..."
    re.compile(
        _NAME + r"\s+(?:has\s+|have\s+)?(?:partnered|partners|teamed\s+up|collaborated|joined\s+forces|announced\s+a\s+partnership)\s+with",
    ),
)

# Words that end a captured name: verbs and prepositions that leak in from titles
NAME_TRAILING_NOISE = {
    "to", "on", "for", "in", "with", "and", "as", "at", "by", "the", "a", "an", "of", "from", "into",
    "enable", "enables", "launch", "launches", "bring", "brings", "expand", "expands", "offer", "offers",
    "power", "powers", "build", "builds", "support", "supports", "deliver", "delivers", "explore",
    "announce", "announces", "introduce", "introduces", "roll", "rolls", "pilot", "pilots", "partner",
    "partners", "partnership", "deal", "agreement", "news", "stablecoin", "usdc", "usdt",
}

STOP_NAMES = {
    "the", "a", "an", "its", "their", "this", "that", "our", "we", "it", "they", "company", "companies",
    "partner", "partners", "leading", "major", "several", "multiple", "global", "new", "other", "others",
    "firms", "banks", "businesses", "institutions", "merchants", "customers", "clients", "users",
    "blockchain", "crypto", "fintech", "fintechs", "startups", "startup", "web3", "defi",
}

INVESTOR_NAME_RE = re.compile(
    r"\b(capital|ventures|venture|partners|vc|fund|funds|investments|holdings|a16z|andreessen|sequoia|paradigm"
    r"|pantera|polychain|multicoin|dragonfly|framework|electric capital|galaxy digital|digital currency group)\b",
    re.IGNORECASE,
)
INVESTOR_CONTEXT_RE = re.compile(
    r"\b(led by|co-led|backed by|investors? (including|such as|like)|funding round|series [a-h]|seed round|invest(ed|ment) (from|by))\b",
    re.IGNORECASE,
)

LARGE_ENTERPRISES = {
    "visa", "mastercard", "american express", "paypal", "stripe", "blackrock", "fidelity", "vanguard",
    "jpmorgan", "jpmorgan chase", "j.p. morgan", "citi", "citigroup", "goldman sachs", "morgan stanley",
    "bank of america", "wells fargo", "bny", "bny mellon", "state street", "hsbc", "barclays",
    "deutsche bank", "societe generale", "société générale", "bnp paribas", "santander", "ubs",
    "standard chartered", "nomura", "mufg", "sbi holdings", "sony", "samsung", "shell", "totalenergies",
    "nestle", "nestlé", "walmart", "amazon", "google", "alphabet", "microsoft", "apple", "meta", "oracle",
    "ibm", "accenture", "deloitte", "pwc", "kpmg", "ey", "mckinsey", "toyota", "siemens", "allianz",
    "axa", "franklin templeton", "invesco", "nasdaq", "cme group", "ice", "dtcc", "swift", "euroclear",
    "worldpay", "fiserv", "fis", "adyen", "revolut", "grab", "telefonica", "vodafone",
}

PARTNER_DESCRIPTION_KEYWORDS = (
    (re.compile(r"\bintegrat", re.IGNORECASE), "Technology integration partnership"),
    (re.compile(r"\bcustod", re.IGNORECASE), "Digital asset custody partnership"),
    (re.compile(r"\btokeni[sz]", re.IGNORECASE), "Tokenization partnership"),
    (re.compile(r"\bsettlement", re.IGNORECASE), "Stablecoin settlement partnership"),
    (re.compile(r"\bcards?\b", re.IGNORECASE), "Card program partnership"),
    (re.compile(r"\bpayments?\b|\bremittance", re.IGNORECASE), "Payments partnership"),
    (re.compile(r"\bwallets?\b", re.IGNORECASE), "Wallet integration partnership"),
    (re.compile(r"\bliquidity\b", re.IGNORECASE), "Liquidity partnership"),
    (re.compile(r"\bon-?ramps?\b|\boff-?ramps?\b", re.IGNORECASE), "On/off-ramp partnership"),
    (re.compile(r"\bstablecoins?\b", re.IGNORECASE), "Stablecoin partnership"),
    (re.compile(r"\bacquir", re.IGNORECASE), "Acquisition"),
    (re.compile(r"\binvest", re.IGNORECASE), "Strategic investment"),
)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_PURPOSE_RE = re.compile(r"\b(to|for|on)\s+([^.;!?]{8,140})")


def _clean_partner_name(raw: str) -> str:
    name = re.sub(r"\s+", " ", raw or "").strip(" ,.;:'\"-")
    name = re.sub(r"'s$", "", name)
    tokens = name.split(" ")
    kept: List[str] = []
    for tok in tokens:
        if tok.lower().strip(",.") in NAME_TRAILING_NOISE:
            break
        kept.append(tok)
    return " ".join(kept).strip(" ,.;:'\"-")


def _is_self_reference(candidate: str, company_name: str) -> bool:
    c = candidate.lower()
    n = (company_name or "").lower().strip()
    if not n:
        return False
    return c == n or c in n or n in c


def classify_partner_type(name: str, context: str = "") -> str:
    """
    Investor for funds / backers, Fortune500Global for large traditional
    enterprises and banks, CryptoNative otherwise.
    """
    lowered = name.lower().strip()
    if INVESTOR_NAME_RE.search(name):
        return "Investor"
    if context and INVESTOR_CONTEXT_RE.search(context) and re.search(
        rf"(led by|backed by|from|by|including|such as|like)\s+(?:[\w&.'-]+\s+){{0,6}}?{re.escape(name)}",
        context,
        re.IGNORECASE,
    ):
        return "Investor"
    if lowered in LARGE_ENTERPRISES or is_bank("", name):
        return "Fortune500Global"
    return "CryptoNative"


def _sentence_with(text: str, *names: str) -> Optional[str]:
    for sentence in _SENTENCE_SPLIT_RE.split(text or ""):
        lowered = sentence.lower()
        if all(n.lower() in lowered for n in names if n):
            return sentence.strip()
    return None


def build_partner_description(partner_name: str, company_name: str, text: str) -> str:
    """
    Short description of a partnership, in order of preference:
    purpose clause near the partnership verb, keyword label, the sentence
    naming both parties, then a generic sentence.
    """
    sentence = _sentence_with(text, partner_name) or ""

    idx = sentence.lower().find(partner_name.lower())
    if idx >= 0:
        tail = sentence[idx + len(partner_name):]
        purpose = _PURPOSE_RE.search(tail)
        if purpose and purpose.start() < 40:
            clause = purpose.group(2).strip().rstrip(",")
            return f"Partnership {purpose.group(1).lower()} {clause}."

    for pattern, label in PARTNER_DESCRIPTION_KEYWORDS:
        if pattern.search(sentence):
            return f"{label} with {company_name}." if company_name else f"{label}."

    both = _sentence_with(text, partner_name, company_name)
    if both:
        return both[:240]

    return f"Strategic partnership between {company_name} and {partner_name}."


def extract_partners_from_search(
    results: Sequence[SearchResult],
    company_name: str,
) -> List[Partner]:
    partners: List[Partner] = []
    seen: Set[str] = set()

    for result in results:
        text = f"{result.title}. {result.snippet}"
        for pattern in PARTNER_PATTERNS:
            for match in pattern.finditer(text):
                name = _clean_partner_name(match.group(1))
                if len(name) < 2 or name.lower() in STOP_NAMES:
                    continue
                if _is_self_reference(name, company_name):
                    continue
                key = name.lower()
                if key in seen:
                    continue
                seen.add(key)

                context = _sentence_with(text, name) or text
                country = infer_country(None, context)
                partners.append(
                    Partner(
                        name=name,
                        type=classify_partner_type(name, context),
                        description=build_partner_description(name, company_name, text),
                        source_url=result.link or None,
                        country=country,
                        region=region_for_country(country) if country else None,
                        industry=determine_industry(context),
                    )
                )
                if len(partners) >= MAX_PARTNERS:
                    return partners

    return partners


ACQUIRED_BY_RE = re.compile(r"(?i:\bacquired\s+by\s+)" + _NAME)
ACQUIRES_RE = re.compile(_NAME + r"\s+(?:has\s+)?(?:acquired|acquires|buys|bought|to acquire)\s+" + _NAME)


def extract_acquirer(text: str, company_name: str) -> Optional[str]:
    """Name of the company that acquired `company_name`, when the text says so."""
    for match in ACQUIRES_RE.finditer(text or ""):
        buyer, target = _clean_partner_name(match.group(1)), _clean_partner_name(match.group(2))
        if _is_self_reference(target, company_name) and not _is_self_reference(buyer, company_name):
            return buyer
    for match in ACQUIRED_BY_RE.finditer(text or ""):
        buyer = _clean_partner_name(match.group(1))
        if buyer and not _is_self_reference(buyer, company_name):
            return buyer
    return None


# ---------------------------------------------------------------------------
# Company names
# ---------------------------------------------------------------------------

NAME_STOPLIST = {
    # articles, pronouns, conjunctions
    "the", "a", "an", "this", "that", "these", "those", "it", "its", "we", "our", "they", "their",
    "and", "or", "but", "in", "on", "for", "with", "by", "at", "from", "to", "of", "as", "after",
    # months and days
    "january", "february", "march", "april", "may", "june", "july", "august", "september",
    "october", "november", "december", "monday", "tuesday", "wednesday", "thursday", "friday",
    "saturday", "sunday", "today", "yesterday",
    # titles and roles
    "ceo", "cfo", "cto", "coo", "president", "chairman", "founder", "co-founder", "director",
    "head", "vice", "chief", "executive", "officer", "managing", "partner",
    # generic nouns that are capitalised at sentence start
    "news", "report", "press", "release", "update", "company", "according", "read", "more",
    "new", "global", "breaking", "exclusive", "how", "why", "what", "when", "where", "who",
    "inc", "ltd", "llc", "corp",
}


# "Bank of England", "Banco Central do Brasil"
COMPANY_NAME_RE = re.compile(
    r"\b([A-Z0-9][\w&.'-]*(?:\s+(?:(?:of|de|do|du|del|der|des|the)\s+)?[A-Z][\w&.'-]*){0,3})"
)


def extract_company_names_from_text(text: str, exclude_names: Iterable[str] = ()) -> List[str]:
    """
    Capitalised 1–4 word sequences that look like organisation names,
    excluding stoplisted words and names the caller already knows.
    """
    excluded = {n.lower().strip() for n in exclude_names if n}
    found: List[str] = []
    seen: Set[str] = set()

    for match in COMPANY_NAME_RE.finditer(text or ""):
        tokens = match.group(1).split()
        while tokens and tokens[0].lower().strip(".,") in NAME_STOPLIST:
            tokens = tokens[1:]
        while tokens and tokens[-1].lower().strip(".,") in NAME_STOPLIST:
            tokens = tokens[:-1]
        if not tokens:
            continue
        name = " ".join(tokens).strip(" .,'")
        if len(name) < 2 or name[0].isdigit():
            continue
        key = name.lower()
        if key in NAME_STOPLIST or key in excluded or key in seen:
            continue
        seen.add(key)
        found.append(name)

    return found
