"""
Trusted Source Registry.

A static table of publication domains with a tier label. It biases search
queries (`site:` clauses) and labels result provenance. The only runtime
input is an explicitly passed `SourceConfig` carrying excluded domains and
user-added sources; nothing here reads configuration on its own.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..core.config import get_settings
from ..schemas.directory import SearchResult


@dataclass(frozen=True)
class TrustedSource:
    domain: str
    name: str
    tier: str


TRUSTED_SOURCES: Tuple[TrustedSource, ...] = (
    # crypto
    TrustedSource("coindesk.com", "CoinDesk", "crypto"),
    TrustedSource("theblock.co", "The Block", "crypto"),
    TrustedSource("decrypt.co", "Decrypt", "crypto"),
    TrustedSource("cointelegraph.com", "Cointelegraph", "crypto"),
    TrustedSource("blockworks.co", "Blockworks", "crypto"),
    TrustedSource("dlnews.com", "DL News", "crypto"),
    TrustedSource("thedefiant.io", "The Defiant", "crypto"),
    TrustedSource("unchainedcrypto.com", "Unchained", "crypto"),
    TrustedSource("bitcoinmagazine.com", "Bitcoin Magazine", "crypto"),
    TrustedSource("ledgerinsights.com", "Ledger Insights", "crypto"),
    # institutional
    TrustedSource("bloomberg.com", "Bloomberg", "institutional"),
    TrustedSource("reuters.com", "Reuters", "institutional"),
    TrustedSource("ft.com", "Financial Times", "institutional"),
    TrustedSource("wsj.com", "The Wall Street Journal", "institutional"),
    TrustedSource("barrons.com", "Barron's", "institutional"),
    TrustedSource("institutionalinvestor.com", "Institutional Investor", "institutional"),
    # fintech
    TrustedSource("finextra.com", "Finextra", "fintech"),
    TrustedSource("fintechfutures.com", "FinTech Futures", "fintech"),
    TrustedSource("pymnts.com", "PYMNTS", "fintech"),
    TrustedSource("paymentsdive.com", "Payments Dive", "fintech"),
    TrustedSource("thepaypers.com", "The Paypers", "fintech"),
    TrustedSource("techcrunch.com", "TechCrunch", "fintech"),
    TrustedSource("fortune.com", "Fortune", "fintech"),
    # research
    TrustedSource("messari.io", "Messari", "research"),
    TrustedSource("galaxy.com", "Galaxy Research", "research"),
    TrustedSource("kaiko.com", "Kaiko", "research"),
    TrustedSource("chainalysis.com", "Chainalysis", "research"),
    # regulatory
    TrustedSource("sec.gov", "SEC", "regulatory"),
    TrustedSource("federalreserve.gov", "Federal Reserve", "regulatory"),
    TrustedSource("bis.org", "BIS", "regulatory"),
    TrustedSource("ecb.europa.eu", "European Central Bank", "regulatory"),
    TrustedSource("mas.gov.sg", "Monetary Authority of Singapore", "regulatory"),
    TrustedSource("fca.org.uk", "FCA", "regulatory"),
    # mainstream
    TrustedSource("cnbc.com", "CNBC", "mainstream"),
    TrustedSource("forbes.com", "Forbes", "mainstream"),
    TrustedSource("businessinsider.com", "Business Insider", "mainstream"),
    TrustedSource("axios.com", "Axios", "mainstream"),
    TrustedSource("nytimes.com", "The New York Times", "mainstream"),
    TrustedSource("businesswire.com", "Business Wire", "mainstream"),
    TrustedSource("prnewswire.com", "PR Newswire", "mainstream"),
    TrustedSource("globenewswire.com", "GlobeNewswire", "mainstream"),
    # regional
    TrustedSource("scmp.com", "South China Morning Post", "regional"),
    TrustedSource("nikkei.com", "Nikkei Asia", "regional"),
    TrustedSource("thenationalnews.com", "The National", "regional"),
    TrustedSource("coindesk.com.br", "CoinDesk Brasil", "regional"),
)


@dataclass(frozen=True)
class SourceConfig:
    """
    Runtime source configuration, passed explicitly into search helpers.

    - excluded_domains: domains the user has switched off.
    - custom_sources: user-added sources, appended after the built-ins.
    """

    excluded_domains: frozenset[str] = field(default_factory=frozenset)
    custom_sources: Tuple[TrustedSource, ...] = ()

    @classmethod
    def from_settings(cls) -> "SourceConfig":
        raw = get_settings().EXCLUDED_SOURCE_DOMAINS or ""
        excluded = frozenset(_normalize_host(d) for d in raw.split(",") if d.strip())
        return cls(excluded_domains=excluded)

    def with_excluded(self, domains: Iterable[str]) -> "SourceConfig":
        merged = set(self.excluded_domains) | {_normalize_host(d) for d in domains if d}
        return SourceConfig(excluded_domains=frozenset(merged), custom_sources=self.custom_sources)


def _normalize_host(value: str) -> str:
    host = (value or "").strip().lower()
    if "://" in host:
        host = urlparse(host).netloc or host
    host = host.split("/", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host


def host_of(url: str) -> str:
    """Lowercase hostname without a leading `www.`; empty string if unparseable."""
    if not url:
        return ""
    try:
        parsed = urlparse(url if "://" in url else f"https://{url}")
    except ValueError:
        return ""
    return _normalize_host(parsed.netloc or "")


def active_sources(config: Optional[SourceConfig] = None) -> List[TrustedSource]:
    config = config or SourceConfig()
    combined = list(TRUSTED_SOURCES) + list(config.custom_sources)
    return [s for s in combined if s.domain not in config.excluded_domains]


def lookup_source(host: str, config: Optional[SourceConfig] = None) -> Optional[TrustedSource]:
    """
    Find the registry entry for a host, by exact match or as a subdomain
    (`markets.businessinsider.com` -> Business Insider).
    """
    host = _normalize_host(host)
    if not host:
        return None
    candidates = active_sources(config)
    for source in candidates:
        if host == source.domain:
            return source
    for source in candidates:
        if host.endswith("." + source.domain):
            return source
    return None


def is_trusted_url(url: str, config: Optional[SourceConfig] = None) -> bool:
    return lookup_source(host_of(url), config) is not None


def build_site_clause(
    config: Optional[SourceConfig] = None,
    k: int = 6,
    rng: Optional[random.Random] = None,
    tiers: Optional[Sequence[str]] = None,
) -> str:
    """
    Build `(site:a OR site:b ...)` from a random subset of active sources.

    Returns an empty string when no sources are available.
    """
    rng = rng or random.Random()
    pool = active_sources(config)
    if tiers:
        pool = [s for s in pool if s.tier in tiers]
    if not pool:
        return ""
    picked = rng.sample(pool, min(k, len(pool)))
    return "(" + " OR ".join(f"site:{s.domain}" for s in picked) + ")"


def sort_trusted_first(
    results: Sequence[SearchResult],
    config: Optional[SourceConfig] = None,
) -> List[SearchResult]:
    """Stable sort putting registry-matched results ahead of the rest."""
    return sorted(results, key=lambda r: 0 if is_trusted_url(r.link, config) else 1)
