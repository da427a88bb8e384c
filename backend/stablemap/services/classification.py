"""
Category, focus and industry classification for directory companies.

Categorisation is an ordered list of (predicate, action) rules evaluated
against a read-only context. A rule marked `stop` ends evaluation when its
predicate fires, which is how "a blockchain is only Infrastructure" takes
precedence over every keyword trigger below it. Suppression rules (banks,
central banks, VCs and consultancies drop Infrastructure) are ordinary
rules placed after the keyword triggers.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Pattern, Sequence, Tuple

from ..schemas.directory import Category

# ---------------------------------------------------------------------------
# Shared patterns
# ---------------------------------------------------------------------------

BLOCKCHAIN_NAME_RE = re.compile(r"(chain|network|protocol|blockchain|labs)\b", re.IGNORECASE)
CONSENSUS_TERMS_RE = re.compile(
    r"\blayer[- ]?(1|2|one|two)\b|\bl[12]\b|\bconsensus\b|\bproof[- ]of[- ](stake|work|history|authority)\b"
    r"|\bvalidators?\b|\brollups?\b|\bmainnet\b",
    re.IGNORECASE,
)
EXPLICIT_CHAIN_RE = re.compile(
    r"\bis an? (?:[\w-]+ ){0,3}(?:layer[- ]?(?:1|2|one|two)|l[12])\b(?: [\w-]+){0,2} ?(?:blockchain|network|chain)\b"
    r"|\bis an? (?:public|permissionless|open[- ]source|decentralized|proof[- ]of[- ]stake) blockchain\b",
    re.IGNORECASE,
)
ISSUES_STABLECOIN_RE = re.compile(
    r"\b(issues|issued|issuer of|launched its own|mints|minted) (?:[\w$-]+ ){0,3}stablecoins?\b"
    r"|\bstablecoin issuer\b",
    re.IGNORECASE,
)

CENTRAL_BANK_NAME_RE = re.compile(
    r"\b(central bank|reserve bank|monetary authority|federal reserve|national bank of|people's bank of"
    r"|bank of (england|japan|canada|france|italy|spain|korea|thailand|israel|mexico|russia|ghana|jamaica)"
    r"|bundesbank|banque de france|banca d'italia|riksbank|norges bank|swiss national bank|de nederlandsche bank)\b",
    re.IGNORECASE,
)
CENTRAL_BANK_TEXT_RE = re.compile(
    r"\bis (the|a|an) (?:[\w'-]+ ){0,3}(central bank|monetary authority|reserve bank)\b",
    re.IGNORECASE,
)

BANK_NAME_RE = re.compile(
    r"\b(bank|bancorp|bankshares|banco|banque|bankhaus|sparkasse|jpmorgan|citigroup|citibank|hsbc|barclays"
    r"|santander|bbva|ubs|bny|bny mellon|state street|wells fargo|standard chartered|societe generale"
    r"|soci[eé]t[eé] g[eé]n[eé]rale|bnp paribas|credit agricole|dbs|ocbc|mizuho|mufg|sumitomo mitsui|nomura)\b",
    re.IGNORECASE,
)
BANK_TEXT_RE = re.compile(
    r"\bis (a|an|the) (?:[\w'-]+ ){0,3}bank\b|\b(chartered|licensed|regulated|state-chartered|nationally chartered) bank\b"
    r"|\bbank charter\b|\bbanking licen[cs]e\b|\btrust charter\b",
    re.IGNORECASE,
)

VC_RE = re.compile(
    r"\b(venture capital|venture firm|venture fund|investment firm|\bvc\b|portfolio companies|invests in|ventures)\b",
    re.IGNORECASE,
)
CONSULTANCY_RE = re.compile(
    r"\b(consultancy|consulting firm|consulting|advisory firm|professional services)\b",
    re.IGNORECASE,
)

KEYWORD_TRIGGERS: Tuple[Tuple[Category, Pattern[str]], ...] = (
    (Category.ISSUER, re.compile(
        r"\bstablecoin issuer\b|\bissuer of\b|\b(issues|issuing|mints|minting) (?:[\w$-]+ ){0,3}(stablecoins?|digital dollars?|tokenized deposits?)\b",
        re.IGNORECASE,
    )),
    (Category.INFRASTRUCTURE, re.compile(
        r"\binfrastructure\b|\bapis?\b|\bsdks?\b|\borchestration\b|\bsettlement (layer|network|rails)\b"
        r"|\btokeni[sz]ation platform\b|\bdeveloper platform\b|\bnode provider\b|\boracle network\b",
        re.IGNORECASE,
    )),
    (Category.WALLET, re.compile(r"\bwallets?\b", re.IGNORECASE)),
    (Category.PAYMENTS, re.compile(
        r"\bpayments?\b|\bremittances?\b|\bcross-border\b|\bmerchants?\b|\bcheckout\b|\bpayouts?\b|\bcard issuing\b",
        re.IGNORECASE,
    )),
    (Category.DEFI, re.compile(
        r"\bdefi\b|\bdecentralized finance\b|\blending protocol\b|\bliquidity pools?\b|\bdex\b|\bautomated market maker\b|\byield\b",
        re.IGNORECASE,
    )),
    (Category.CUSTODY, re.compile(r"\bcustod(y|ian|ians|ial)\b|\bsafekeeping\b", re.IGNORECASE)),
)


def is_blockchain_entity(text: str, company_name: Optional[str] = None) -> bool:
    """
    True when the entity itself is a blockchain network.

    Either the name looks like a chain (chain/network/protocol/blockchain/labs)
    and the text uses layer or consensus terminology, or the text states
    outright that it "is a layer-X blockchain".
    """
    text = text or ""
    name = company_name or ""
    if name and BLOCKCHAIN_NAME_RE.search(name) and CONSENSUS_TERMS_RE.search(text):
        return True
    return bool(EXPLICIT_CHAIN_RE.search(text))


def is_central_bank(text: str, company_name: Optional[str] = None) -> bool:
    if company_name and CENTRAL_BANK_NAME_RE.search(company_name):
        return True
    return bool(CENTRAL_BANK_TEXT_RE.search(text or ""))


def is_bank(text: str, company_name: Optional[str] = None) -> bool:
    if company_name and BANK_NAME_RE.search(company_name):
        return True
    return bool(BANK_TEXT_RE.search(text or ""))


# ---------------------------------------------------------------------------
# Rule engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleContext:
    text: str
    name: str


Tags = FrozenSet[Category]


@dataclass(frozen=True)
class CategoryRule:
    name: str
    predicate: Callable[[RuleContext, Tags], bool]
    action: Callable[[RuleContext, Tags], Tags]
    stop: bool = False


def _add(*cats: Category) -> Callable[[RuleContext, Tags], Tags]:
    return lambda ctx, tags: tags | frozenset(cats)


def _add_and_drop_infra(cat: Category) -> Callable[[RuleContext, Tags], Tags]:
    return lambda ctx, tags: (tags | {cat}) - {Category.INFRASTRUCTURE}


def _blockchain_tags(ctx: RuleContext, tags: Tags) -> Tags:
    result = {Category.INFRASTRUCTURE}
    if ISSUES_STABLECOIN_RE.search(ctx.text):
        result.add(Category.ISSUER)
    return frozenset(result)


def _keyword_rule(cat: Category, pattern: Pattern[str]) -> CategoryRule:
    return CategoryRule(
        name=f"keyword:{cat.value}",
        predicate=lambda ctx, tags: bool(pattern.search(ctx.text)),
        action=_add(cat),
    )


CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(
        name="blockchain_entity",
        predicate=lambda ctx, tags: is_blockchain_entity(ctx.text, ctx.name),
        action=_blockchain_tags,
        stop=True,
    ),
    *(_keyword_rule(cat, pattern) for cat, pattern in KEYWORD_TRIGGERS),
    CategoryRule(
        name="central_bank",
        predicate=lambda ctx, tags: is_central_bank(ctx.text, ctx.name),
        action=_add_and_drop_infra(Category.CENTRAL_BANKS),
    ),
    CategoryRule(
        name="bank",
        predicate=lambda ctx, tags: Category.CENTRAL_BANKS not in tags and is_bank(ctx.text, ctx.name),
        action=_add_and_drop_infra(Category.BANKS),
    ),
    CategoryRule(
        name="vc",
        predicate=lambda ctx, tags: bool(VC_RE.search(ctx.name) or VC_RE.search(ctx.text)),
        action=_add_and_drop_infra(Category.VC),
    ),
    CategoryRule(
        name="consultancy",
        predicate=lambda ctx, tags: bool(CONSULTANCY_RE.search(ctx.name) or CONSULTANCY_RE.search(ctx.text)),
        action=_add_and_drop_infra(Category.CONSULTANCY),
    ),
)


def apply_rules(
    text: str,
    company_name: Optional[str] = None,
    rules: Sequence[CategoryRule] = CATEGORY_RULES,
) -> Tags:
    ctx = RuleContext(text=text or "", name=company_name or "")
    tags: Tags = frozenset()
    for rule in rules:
        if rule.predicate(ctx, tags):
            tags = rule.action(ctx, tags)
            if rule.stop:
                break
    return tags


def categorize_from_text(text: str, company_name: Optional[str] = None) -> List[Category]:
    """
    Category tags for a company description, in enum declaration order.
    """
    tags = apply_rules(text, company_name)
    return [c for c in Category if c in tags]


# ---------------------------------------------------------------------------
# Focus
# ---------------------------------------------------------------------------

CRYPTO_SIGNALS: Tuple[Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bblockchains?\b",
        r"\bcrypto(currency|currencies)?\b",
        r"\bstablecoins?\b",
        r"\btokens?\b|\btokeni[sz]ed\b",
        r"\bdefi\b|\bdecentralized\b",
        r"\bweb3\b",
        r"\bdigital assets?\b",
        r"\bon-?chain\b",
        r"\bsmart contracts?\b",
        r"\bbitcoin\b|\bethereum\b|\bsolana\b",
        r"\bnfts?\b|\bdaos?\b",
        r"\bcrypto-native\b|\bfounded .{0,20}to build .{0,30}(blockchain|crypto)",
    )
)

TRADITIONAL_SIGNALS: Tuple[Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bbank(s|ing)?\b",
        r"\bfortune (500|global 500)\b",
        r"\bmultinational\b",
        r"\bfounded in (1[6-9]\d\d|200\d)\b",
        r"\basset manag(er|ement)\b",
        r"\binsurance\b",
        r"\b(card|payment) network\b",
        r"\bpublicly traded\b|\b(nyse|nasdaq)\b",
        r"\benterprise\b|\bconglomerate\b",
        r"\bretail(er)?\b",
        r"\bbrokerage\b|\bwealth management\b",
        r"\btraditional\b|\blegacy\b",
    )
)

CRYPTO_NAME_RE = re.compile(r"(chain|coin|crypto|swap|protocol|dao|\bfi\b|token)", re.IGNORECASE)


def focus_scores(text: str, company_name: str = "") -> tuple[int, int]:
    text = text or ""
    crypto = sum(1 for p in CRYPTO_SIGNALS if p.search(text))
    traditional = sum(1 for p in TRADITIONAL_SIGNALS if p.search(text))
    if company_name and CRYPTO_NAME_RE.search(company_name):
        crypto += 1
    return crypto, traditional


def determine_focus(text: str, company_name: str = "") -> str:
    """
    Crypto-First only when crypto signals strictly outnumber traditional ones;
    ties fall to Crypto-Second.
    """
    crypto, traditional = focus_scores(text, company_name)
    return "Crypto-First" if crypto > traditional else "Crypto-Second"


# ---------------------------------------------------------------------------
# Industry
# ---------------------------------------------------------------------------

INDUSTRY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
    (label, re.compile(p, re.IGNORECASE))
    for label, p in (
        ("Central Banking", r"\bcentral bank(ing)?\b|\bmonetary authority\b"),
        ("Venture Capital", r"\bventure capital\b|\bventure firm\b|\binvestment firm\b"),
        ("Consulting", r"\bconsult(ancy|ing)\b|\badvisory firm\b"),
        ("Banking", r"\bbank(ing)?\b"),
        ("Asset Management", r"\basset manag(er|ement)\b|\bfund manager\b|\betfs?\b"),
        ("Payments", r"\bpayments?\b|\bcard network\b|\bremittances?\b"),
        ("Digital Assets", r"\bstablecoins?\b|\bcrypto(currency)?\b|\bblockchain\b|\bdigital assets?\b"),
        ("Financial Services", r"\bfinancial services\b|\bbrokerage\b|\binsurance\b|\bexchange\b"),
        ("Automotive", r"\bautomotive\b|\bautomaker\b|\bvehicles?\b"),
        ("Energy", r"\benergy\b|\boil\b|\butilit(y|ies)\b"),
        ("Retail", r"\bretail(er)?\b|\be-commerce\b|\bconsumer goods\b"),
        ("Telecommunications", r"\btelecom(munications)?\b|\bmobile operator\b"),
    )
)


def determine_industry(text: str) -> str:
    for label, pattern in INDUSTRY_PATTERNS:
        if pattern.search(text or ""):
            return label
    return "Technology"
