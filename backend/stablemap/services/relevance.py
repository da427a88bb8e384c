"""
Relevance filtering and news source-type classification.

Search and news feeds carry a lot of crypto noise (price calls, airdrops,
exchange listicles, signal groups, "what is X" explainers). Items matching
any pattern below, or hosted on a blocked domain, are dropped before they
reach a news feed.
"""
from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple

from ..schemas.directory import NewsItem
from .sources import host_of

# Ordered (group, pattern) table; first hit wins for logging purposes.
IRRELEVANT_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    # price / market speculation
    ("price_speculation", re.compile(r"\bprice (prediction|forecast|analysis|target|outlook)s?\b")),
    ("price_speculation", re.compile(
        r"\b(will|could|can) (bitcoin|btc|eth|ethereum|xrp|solana|sol|doge|dogecoin|cardano|ada)\b.{0,40}?\b(reach|hit|surge|soar|crash|rally|explode)"
    )),
    ("price_speculation", re.compile(r"\bprices? (surges?|soars?|plunges?|crash(es)?|rall(y|ies)|dumps?|pumps?|tumbles?)\b")),
    ("price_speculation", re.compile(r"\b(bull|bear) (run|market|trap)\b")),
    ("price_speculation", re.compile(r"\ball[- ]time highs?\b")),
    ("price_speculation", re.compile(r"\b(technical analysis|chart analysis|support and resistance|resistance level|support level)\b")),
    ("price_speculation", re.compile(r"\bto the moon\b|\b\d+x (gains?|returns?)\b")),
    ("price_speculation", re.compile(r"\b(crypto market (today|update|recap|wrap)|market (recap|wrap-up))\b")),
    # token launches / airdrops / ICOs
    ("token_launch", re.compile(r"\bairdrops?\b")),
    ("token_launch", re.compile(r"\b(ico|ido|ieo)s?\b")),
    ("token_launch", re.compile(r"\bpre-?sales?\b")),
    ("token_launch", re.compile(r"\btoken (launch|sale|unlock|generation event)s?\b")),
    ("token_launch", re.compile(r"\bmeme ?coins?\b")),
    ("token_launch", re.compile(r"\bnew (crypto|token|coin|altcoin)s? to (buy|watch)\b")),
    # exchange rankings / referral spam
    ("exchange_spam", re.compile(r"\b(best|top \d+) (crypto )?(exchanges?|wallets?|platforms?|apps?) (to|for|in)\b")),
    ("exchange_spam", re.compile(r"\breferral (code|link|bonus)\b")),
    ("exchange_spam", re.compile(r"\b(sign[- ]?up bonus|promo code|bonus code)\b")),
    ("exchange_spam", re.compile(r"\b(exchange|broker) review\b")),
    # trading signal spam
    ("trading_signals", re.compile(r"\btrading signals?\b")),
    ("trading_signals", re.compile(r"\b(buy|sell) signals?\b")),
    ("trading_signals", re.compile(r"\b(long|short) (position|setup)s?\b|\bleverage trading\b")),
    ("trading_signals", re.compile(r"\b(copy trading|trading bots?)\b")),
    ("trading_signals", re.compile(r"\bwhale (alerts?|moves?|activity)\b")),
    # generic explainers
    ("explainer", re.compile(
        r"\bwhat (is|are) (a |an |the )?(stablecoins?|bitcoin|blockchains?|defi|crypto(currency|currencies)?|web3|nfts?|tokeni[sz]ation|cbdcs?|usdt|usdc)\b"
    )),
    ("explainer", re.compile(r"\b(beginner'?s? guide|for beginners|explained simply|how to buy)\b")),
    ("explainer", re.compile(r"\b(ultimate|complete) guide\b|\bhow does [\w\s]{1,30} work\b")),
]

# Promotional, audit-marketing and encyclopedia domains
BLOCKED_DOMAINS = frozenset({
    "wikipedia.org",
    "investopedia.com",
    "britannica.com",
    "techopedia.com",
    "coinmarketcap.com",
    "coingecko.com",
    "coincodex.com",
    "coinpedia.org",
    "certik.com",
    "hacken.io",
    "quillaudits.com",
    "changelly.com",
    "binance.com",
    "bybit.com",
    "mexc.com",
    "kucoin.com",
    "bitget.com",
})

PARTNERSHIP_RE = re.compile(
    r"\b(partner(s|ed|ing)? with|partnership|teams? up|joins? forces|strategic alliance|collaborat(es|ion|ing)|integrat(es|ion) with)\b",
    re.IGNORECASE,
)
PRESS_RELEASE_SOURCE_RE = re.compile(
    r"(business ?wire|pr ?newswire|globe ?newswire|accesswire|newsfile|press release|manual entry)",
    re.IGNORECASE,
)
PRESS_RELEASE_TEXT_RE = re.compile(
    r"\b(press release|announced today|today announced|is pleased to announce|proudly announces)\b",
    re.IGNORECASE,
)


def irrelevance_reason(title: str, summary: str = "", url: Optional[str] = None) -> Optional[str]:
    """Return the group name of the first rule that rejects the item, else None."""
    text = f"{title or ''} {summary or ''}".lower()
    for group, pattern in IRRELEVANT_PATTERNS:
        if pattern.search(text):
            return group

    host = host_of(url or "")
    if host and any(host == d or host.endswith("." + d) for d in BLOCKED_DOMAINS):
        return "blocked_domain"
    return None


def is_irrelevant_news(title: str, summary: str = "", url: Optional[str] = None) -> bool:
    return irrelevance_reason(title, summary, url) is not None


def classify_news_source_type(item: NewsItem) -> str:
    """
    Derive press / press_release / partnership from item content.

    Computed on read; a stored `source_type` is only a hint.
    """
    if item.source == "Directory Intelligence" or PARTNERSHIP_RE.search(item.title or ""):
        return "partnership"
    if PRESS_RELEASE_SOURCE_RE.search(item.source or ""):
        return "press_release"
    if not item.url or item.url == "#":
        return "press_release"
    if PRESS_RELEASE_TEXT_RE.search(f"{item.title} {item.summary}"):
        return "press_release"
    return "press"
