# backend/stablemap/schemas/directory.py
from __future__ import annotations

import re
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

PartnerType = Literal["Fortune500Global", "CryptoNative", "Investor"]
Department = Literal["Strategy", "Customer Success", "Business Dev", "Partnerships", "Other"]
CompanyFocus = Literal["Crypto-First", "Crypto-Second"]
NewsSourceType = Literal["press", "press_release", "partnership"]
Region = Literal["North America", "EU", "Europe", "APAC", "LATAM", "MEA", "EMEA", "Global"]

DEPARTMENTS: tuple[str, ...] = ("Strategy", "Customer Success", "Business Dev", "Partnerships", "Other")

_ID_SUFFIX_RE = re.compile(
    r"\s+(Inc|LLC|Ltd|Limited|Corp|Corporation|Group|Holdings|PLC|SA|AG|GmbH)$",
    re.IGNORECASE,
)


class Category(str, Enum):
    ISSUER = "Issuer"
    INFRASTRUCTURE = "Infrastructure"
    WALLET = "Wallet"
    PAYMENTS = "Payments"
    DEFI = "DeFi"
    CUSTODY = "Custody"
    BANKS = "Banks"
    CENTRAL_BANKS = "Central Banks"
    VC = "VC"
    CONSULTANCY = "Consultancy"


def generate_company_id(name: str) -> str:
    """
    Deterministic directory id for a company name.

    Commas and periods are dropped before a single trailing corporate suffix
    is removed, so "Acme Corp, Inc." and "Acme Corp Inc" share an id.
    """
    clean = re.sub(r"[,.]", "", name or "")
    clean = _ID_SUFFIX_RE.sub("", clean.strip()).strip()
    return "c-" + re.sub(r"[^a-z0-9]", "", clean.lower())


class SearchResult(BaseModel):
    title: str = ""
    link: str = ""
    snippet: str = ""
    display_link: str = ""


class Partner(BaseModel):
    name: str
    type: PartnerType = "CryptoNative"
    description: str = ""
    date: Optional[str] = None
    source_url: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    industry: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("partner name must not be empty")
        return v

    def partner_key(self) -> tuple[str, str]:
        return (self.name.lower(), self.type)


class FundingInfo(BaseModel):
    total_raised: Optional[str] = None
    valuation: Optional[str] = None
    last_round: Optional[str] = None
    last_round_date: Optional[str] = None
    investors: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            [self.total_raised, self.valuation, self.last_round, self.last_round_date, self.investors]
        )

    def merge(self, other: Optional["FundingInfo"]) -> "FundingInfo":
        """
        Additive merge: values from `other` fill gaps or replace values only
        when they are non-empty. Investors are unioned case-insensitively,
        keeping first-seen spelling.
        """
        if other is None:
            return self.model_copy(deep=True)

        investors = list(self.investors)
        seen = {i.lower() for i in investors}
        for inv in other.investors:
            inv = inv.strip()
            if inv and inv.lower() not in seen:
                investors.append(inv)
                seen.add(inv.lower())

        return FundingInfo(
            total_raised=other.total_raised or self.total_raised,
            valuation=other.valuation or self.valuation,
            last_round=other.last_round or self.last_round,
            last_round_date=other.last_round_date or self.last_round_date,
            investors=investors,
        )


class Job(BaseModel):
    id: str
    title: str
    department: Department = "Other"
    locations: List[str] = Field(default_factory=lambda: ["Remote"])
    posted_date: str
    url: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    type: Optional[Literal["Full-time", "Contract", "Remote"]] = None
    hidden: bool = False
    dismiss_reason: Optional[str] = None


class NewsItem(BaseModel):
    id: str
    title: str
    source: str
    date: str
    summary: str = ""
    url: str = "#"
    related_companies: List[str] = Field(default_factory=list)
    source_type: Optional[NewsSourceType] = None


class Company(BaseModel):
    id: str
    name: str
    description: str = ""
    categories: List[Category] = Field(default_factory=list)
    website: str = ""
    headquarters: str = "Remote"
    country: Optional[str] = None
    region: Region = "Global"
    focus: CompanyFocus = "Crypto-Second"
    industry: Optional[str] = None
    partners: List[Partner] = Field(default_factory=list)
    jobs: List[Job] = Field(default_factory=list)
    funding: Optional[FundingInfo] = None
    recent_news: List[NewsItem] = Field(default_factory=list)

    @classmethod
    def new(cls, name: str, **fields) -> "Company":
        return cls(id=generate_company_id(name), name=name.strip(), **fields)


# ---------------------------------------------------------------------------
# Orchestration result shapes
# ---------------------------------------------------------------------------


class CompanyEnrichment(BaseModel):
    """Partial company record produced by enrichment; merged by the caller."""

    description: str = ""
    categories: List[Category] = Field(default_factory=list)
    partners: List[Partner] = Field(default_factory=list)
    website: str = ""
    headquarters: str = "Remote"
    country: Optional[str] = None
    region: Region = "Global"
    focus: CompanyFocus = "Crypto-Second"
    industry: str = "Technology"
    funding: Optional[FundingInfo] = None
    ai_structured: bool = False


class JobAnalysis(BaseModel):
    company_name: str = ""
    job_title: str = ""
    locations: List[str] = Field(default_factory=list)
    department: Department = "Other"
    salary: Optional[str] = None
    description: str = ""
    requirements: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    type: Optional[Literal["Full-time", "Contract", "Remote"]] = None
    url: str = ""
    fetch_failed: bool = False


class PortfolioCompany(BaseModel):
    name: str
    description: str = ""
    category: str = "Infrastructure"
    funding_stage: Optional[str] = None
    investment_date: Optional[str] = None


class CentralBankScan(BaseModel):
    fixed: List[Company] = Field(default_factory=list)
    discovered: List[Company] = Field(default_factory=list)


class NewsMentions(BaseModel):
    mentioned_companies: List[str] = Field(default_factory=list)
    summary: str = ""


class FundingBatchProgress(BaseModel):
    completed: int
    total: int
    company_name: str
    found: bool = False


class CompanyRecommendation(BaseModel):
    name: str
    reason: str = ""
