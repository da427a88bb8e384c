from uuid import uuid4
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

from ..schemas.directory import (
    CentralBankScan,
    CompanyEnrichment,
    CompanyRecommendation,
    Job,
    JobAnalysis,
    NewsItem,
    NewsMentions,
    Partner,
    PortfolioCompany,
)
from ..schemas.requests import (
    CompanyNameRequest,
    CompanyNewsRequest,
    DirectoryRequest,
    EnrichCompanyRequest,
    FundingBatchOut,
    FundingBatchRequest,
    IndustryNewsRequest,
    InvestorNewsRequest,
    JobLinkRequest,
    NewsMentionsRequest,
    PartnershipScanRequest,
    PortfolioRequest,
    RecommendationsRequest,
)
from ..services.central_banks import scan_and_fix_central_banks
from ..services.context import EnrichmentContext
from ..services.enrichment import (
    batch_fetch_funding,
    enrich_company_data,
    recommend_missing_companies,
    scan_for_new_partnerships,
)
from ..services.investors import lookup_investor_portfolio, lookup_investor_portfolio_from_url
from ..services.jobs import analyze_job_link, find_job_openings
from ..services.llm import RotationState
from ..services.news import (
    analyze_news_for_companies,
    fetch_industry_news,
    scan_company_news,
    scan_investor_news,
)
from ..core.config import get_settings

router = APIRouter(tags=["enrichment"])

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)

# One failure streak per process, shared by every request.
_rotation = RotationState()


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_context() -> EnrichmentContext:
    return EnrichmentContext.from_settings(rotation=_rotation)


def _log_request(operation: str, **fields) -> str:
    request_id = str(uuid4())
    logger.info("Handling request", extra={"operation": operation, "request_id": request_id, **fields})
    return request_id


@router.post("/companies/enrich", response_model=CompanyEnrichment)
async def enrich_company(
    payload: EnrichCompanyRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("enrich_company_data", company=payload.company_name)
    return await enrich_company_data(ctx, payload.company_name, payload.existing)


@router.post("/companies/partnerships/scan", response_model=List[Partner])
async def scan_partnerships(
    payload: PartnershipScanRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("scan_for_new_partnerships", company=payload.company_name)
    return await scan_for_new_partnerships(ctx, payload.company_name, payload.existing_partner_names)


@router.post("/companies/recommendations", response_model=List[CompanyRecommendation])
async def recommend_companies(
    payload: RecommendationsRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("recommend_missing_companies")
    return await recommend_missing_companies(ctx, payload.existing_names, payload.limit)


@router.post("/companies/funding/batch", response_model=FundingBatchOut)
async def funding_batch(
    payload: FundingBatchRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    request_id = _log_request("batch_fetch_funding")

    def on_progress(progress):
        logger.info(
            "Funding progress %d/%d",
            progress.completed,
            progress.total,
            extra={"operation": "batch_fetch_funding", "request_id": request_id, "company": progress.company_name},
        )

    funding = await batch_fetch_funding(ctx, payload.companies, payload.batch_size, on_progress)
    return FundingBatchOut(funding=funding, completed=len(payload.companies))


@router.post("/jobs/openings", response_model=List[Job])
async def job_openings(
    payload: CompanyNameRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("find_job_openings", company=payload.company_name)
    return await find_job_openings(ctx, payload.company_name)


@router.post("/jobs/analyze", response_model=JobAnalysis)
async def job_link(
    payload: JobLinkRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("analyze_job_link", query=str(payload.url))
    return await analyze_job_link(ctx, str(payload.url), payload.pasted_text)


@router.post("/news/industry", response_model=List[NewsItem])
async def industry_news(
    payload: IndustryNewsRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("fetch_industry_news")
    return await fetch_industry_news(ctx, payload.directory_companies)


@router.post("/news/company", response_model=List[NewsItem])
async def company_news(
    payload: CompanyNewsRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("scan_company_news", company=payload.company_name)
    return await scan_company_news(ctx, payload.company_name, payload.vote_feedback)


@router.post("/news/investor", response_model=List[NewsItem])
async def investor_news(
    payload: InvestorNewsRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("scan_investor_news", company=payload.investor_name)
    return await scan_investor_news(ctx, payload.investor_name, payload.portfolio_names)


@router.post("/news/mentions", response_model=NewsMentions)
async def news_mentions(
    payload: NewsMentionsRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("analyze_news_for_companies")
    return await analyze_news_for_companies(ctx, payload.content, payload.known_names)


@router.post("/investors/portfolio", response_model=List[PortfolioCompany])
async def investor_portfolio(
    payload: PortfolioRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("lookup_investor_portfolio", company=payload.investor_name)
    if payload.url:
        return await lookup_investor_portfolio_from_url(
            ctx, str(payload.url), payload.investor_name, payload.existing_names
        )
    return await lookup_investor_portfolio(ctx, payload.investor_name, payload.existing_names)


@router.post("/central-banks/scan", response_model=CentralBankScan)
async def central_bank_scan(
    payload: DirectoryRequest,
    ctx: EnrichmentContext = Depends(get_context),
    _: None = Depends(verify_api_key),
):
    _log_request("scan_and_fix_central_banks")
    return await scan_and_fix_central_banks(ctx, payload.companies)
