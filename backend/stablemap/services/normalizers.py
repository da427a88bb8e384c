"""
Text normalizers for search output.

Search titles, source labels, money amounts and websites arrive in many
shapes from the search grounding layer and from LLM output. These helpers
turn them into display-ready values and never raise on bad input.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse, urlunparse

from ..schemas.directory import SearchResult
from .sources import SourceConfig, host_of, lookup_source

# " - CoinDesk", " | Reuters", " — The Block"
_SITE_SUFFIX_RE = re.compile(r"\s+[-|–—]\s+[^-|–—]+$")

_URL_LIKE_PATTERNS = (
    re.compile(r"^https?://", re.IGNORECASE),
    re.compile(r"^www\.", re.IGNORECASE),
    re.compile(r"^[a-z0-9-]+\.[a-z]{2,}$", re.IGNORECASE),
    re.compile(r"^[a-z0-9-]+\.[a-z]{2,}(\.[a-z]{2,})?(/\S*)?$", re.IGNORECASE),
)

_SENTENCE_END_RE = re.compile(r"[.!?](\s|$)")

MAX_DERIVED_TITLE_CHARS = 120

# Host segments that never make a useful publication label
GENERIC_HOST_TOKENS = {
    "www", "www2", "m", "amp", "blog", "blogs", "news", "en", "app", "go",
    "com", "org", "net", "io", "co", "uk", "us", "de", "fr", "jp", "gov",
    "info", "biz", "ai", "xyz", "finance", "media", "press", "cloud",
    "google", "vertexaisearch",
}

_AMOUNT_RE = re.compile(
    r"(\d[\d,]*(?:\.\d+)?)\s*(billion|million|thousand|bn|b|m|k)?\b",
    re.IGNORECASE,
)

_UNIT_MULTIPLIERS = {
    "billion": 1e9,
    "bn": 1e9,
    "b": 1e9,
    "million": 1e6,
    "m": 1e6,
    "thousand": 1e3,
    "k": 1e3,
}

_DUPLICATE_TLD_RE = re.compile(r"(\.[a-z]{2,})(?:\1)+(?=$|[/:?#])", re.IGNORECASE)
_HOSTNAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+$")


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------


def looks_like_url(value: str) -> bool:
    s = (value or "").strip()
    if not s:
        return False
    return any(p.search(s) for p in _URL_LIKE_PATTERNS)


def _title_from_snippet(snippet: str) -> str:
    text = re.sub(r"\s+", " ", snippet or "").strip()
    if not text:
        return ""
    match = _SENTENCE_END_RE.search(text)
    if match and 10 < match.start() <= MAX_DERIVED_TITLE_CHARS:
        return text[: match.start()].strip()
    if len(text) <= MAX_DERIVED_TITLE_CHARS:
        return text
    cut = text[:MAX_DERIVED_TITLE_CHARS]
    # Prefer a word boundary over a mid-word cut
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.strip()


def clean_search_title(title: str, snippet: str = "") -> str:
    """
    Strip a trailing " - Site" / " | Site" suffix. When what is left is just a
    URL or bare domain, derive a headline from the first sentence of the
    snippet instead. Never returns an empty string.
    """
    cleaned = re.sub(r"\s+", " ", title or "").strip()

    stripped = _SITE_SUFFIX_RE.sub("", cleaned).strip()
    if stripped:
        cleaned = stripped

    if not cleaned or looks_like_url(cleaned):
        derived = _title_from_snippet(snippet)
        if derived:
            return derived
        if cleaned and not snippet:
            return cleaned
        return "Untitled"

    return cleaned


# ---------------------------------------------------------------------------
# Source labels
# ---------------------------------------------------------------------------


def _label_from_host(host: str) -> str:
    for segment in host.split("."):
        if len(segment) > 2 and segment not in GENERIC_HOST_TOKENS:
            words = re.split(r"[-_]+", segment)
            return " ".join(w.capitalize() for w in words if w)
    return ""


def resolve_source_name(
    url: str,
    display_link: str = "",
    config: Optional[SourceConfig] = None,
) -> str:
    """
    Human-readable publication name for a result.

    Registry lookup on the URL host first, then on display_link, then a label
    derived from the hostname. Never returns a bare domain.
    """
    url_host = host_of(url)
    if "vertexaisearch" in url_host:
        url_host = ""
    display_host = host_of(display_link)

    for host in (url_host, display_host):
        if not host:
            continue
        source = lookup_source(host, config)
        if source:
            return source.name

    for host in (url_host, display_host):
        if not host:
            continue
        label = _label_from_host(host)
        if label:
            return label

    return "Web"


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


def _trim_number(value: float) -> str:
    return ("%.2f" % value).rstrip("0").rstrip(".")


def parse_amount(raw: str) -> Optional[float]:
    """Parse "$1.5 billion" / "450M" / "2,000,000" into a base-unit float."""
    match = _AMOUNT_RE.search(raw or "")
    if not match:
        return None
    try:
        number = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    unit = (match.group(2) or "").lower()
    return number * _UNIT_MULTIPLIERS.get(unit, 1.0)


def format_financial_amount(raw: str) -> str:
    """
    Re-render an amount in $K / $M / $B notation.

    Input without a parseable number is returned stripped and unchanged.
    """
    if not raw:
        return ""
    value = parse_amount(raw)
    if value is None:
        return raw.strip()

    if value >= 1e9:
        return f"${_trim_number(value / 1e9)}B"
    if value >= 1e6:
        return f"${_trim_number(value / 1e6)}M"
    if value >= 1e3:
        return f"${_trim_number(value / 1e3)}K"
    return f"${_trim_number(value)}"


# ---------------------------------------------------------------------------
# Websites
# ---------------------------------------------------------------------------


def sanitize_website(raw: str) -> str:
    """
    Normalise a website into `https://host[/path]`.

    Collapses repeated TLDs (`.com.com`), adds a scheme, drops trailing
    slashes. Returns "" when the result is not a plausible URL.
    """
    value = (raw or "").strip().strip("<>\"'")
    if not value:
        return ""

    value = _DUPLICATE_TLD_RE.sub(r"\1", value)

    if not re.match(r"^[a-z][a-z0-9+.-]*://", value, re.IGNORECASE):
        value = f"https://{value}"

    value = value.rstrip("/")

    try:
        parsed = urlparse(value)
    except ValueError:
        return ""

    if parsed.scheme.lower() not in ("http", "https"):
        return ""
    host = (parsed.hostname or "").lower()
    if not host or not _HOSTNAME_RE.match(host):
        return ""
    if re.search(r"\s", parsed.netloc):
        return ""

    return urlunparse(parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower()))


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


def truncate_text(text: str, limit: int, marker: str = "") -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + marker


def normalize_title_key(title: str) -> str:
    """Dedup key for headlines: lowercase alphanumerics, single spaces."""
    key = re.sub(r"[^a-z0-9\s]", " ", (title or "").lower())
    return re.sub(r"\s+", " ", key).strip()


def normalize_url_key(url: str) -> str:
    if not url:
        return ""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url.strip().lower()
    host = (parsed.netloc or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{parsed.path.rstrip('/')}" + (f"?{parsed.query}" if parsed.query else "")


def dedupe_results_by_url(results: Iterable[SearchResult]) -> List[SearchResult]:
    seen: set[str] = set()
    out: List[SearchResult] = []
    for r in results:
        key = normalize_url_key(r.link) or normalize_title_key(r.title)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out
