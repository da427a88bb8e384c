from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl

from .directory import Company, FundingInfo


class EnrichCompanyRequest(BaseModel):
    company_name: str = Field(min_length=1)
    existing: Optional[Company] = None


class PartnershipScanRequest(BaseModel):
    company_name: str = Field(min_length=1)
    existing_partner_names: List[str] = Field(default_factory=list)


class CompanyNameRequest(BaseModel):
    company_name: str = Field(min_length=1)


class JobLinkRequest(BaseModel):
    url: HttpUrl
    pasted_text: Optional[str] = None


class IndustryNewsRequest(BaseModel):
    directory_companies: List[str] = Field(default_factory=list)


class CompanyNewsRequest(BaseModel):
    company_name: str = Field(min_length=1)
    vote_feedback: str = ""


class InvestorNewsRequest(BaseModel):
    investor_name: str = Field(min_length=1)
    portfolio_names: List[str] = Field(default_factory=list)


class PortfolioRequest(BaseModel):
    investor_name: str = Field(min_length=1)
    existing_names: List[str] = Field(default_factory=list)
    url: Optional[HttpUrl] = None


class DirectoryRequest(BaseModel):
    companies: List[Company] = Field(default_factory=list)


class FundingBatchRequest(BaseModel):
    companies: List[Company] = Field(default_factory=list)
    batch_size: int = Field(default=5, ge=1, le=50)


class FundingBatchOut(BaseModel):
    funding: dict[str, FundingInfo] = Field(default_factory=dict)
    completed: int = 0


class NewsMentionsRequest(BaseModel):
    content: str = Field(min_length=1)
    known_names: List[str] = Field(default_factory=list)


class RecommendationsRequest(BaseModel):
    existing_names: List[str] = Field(default_factory=list)
    limit: int = Field(default=3, ge=1, le=10)
