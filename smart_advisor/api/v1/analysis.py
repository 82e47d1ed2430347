"""POST /v1/analysis and POST /v1/cost - financing analysis endpoints"""

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request

from smart_advisor.api.v1.schemas import (
    AdviceSchema,
    AnalysisRequest,
    AnalysisResponse,
    ComparisonSchema,
    CostResponse,
    LoanInputsSchema,
    PortfolioItemSchema,
)
from smart_advisor.api.dependencies import get_analysis_service, get_request_id
from smart_advisor.domain.coercion import sanitize_text
from smart_advisor.domain.exceptions import (
    AdvisoryConfigurationError,
    AnalysisCancelled,
    AnalysisInProgress,
    ClientServiceError,
    DomainException,
    MalformedResponse,
    RateLimited,
    TransientServiceError,
)
from smart_advisor.domain.models import CostResult, LoanInputs, PortfolioItem, ProductType
from smart_advisor.services.analysis import AnalysisService

router = APIRouter()


def to_portfolio_items(items: List[PortfolioItemSchema]) -> List[PortfolioItem]:
    """Domain items with sanitized names; ids are positional when the caller sends none"""
    return [
        PortfolioItem(
            id=item.id or str(index),
            name=sanitize_text(item.name),
            amount=item.amount,
            return_rate=item.return_rate,
        )
        for index, item in enumerate(items)
    ]


def to_loan_inputs(product: str, schema: LoanInputsSchema) -> LoanInputs:
    """Product defaults overlaid with the fields the caller sent"""
    inputs = LoanInputs.defaults(ProductType.parse(product))
    provided = schema.model_dump(exclude_unset=True, exclude_none=True, exclude={"portfolio"})
    for name, value in provided.items():
        setattr(inputs, name, value)

    if schema.portfolio is not None:
        inputs.portfolio = to_portfolio_items(schema.portfolio)
    return inputs


def to_cost_response(cost: CostResult) -> CostResponse:
    return CostResponse(
        product=cost.product.value,
        monthly_installment=cost.monthly_installment,
        final_cost=cost.final_cost,
        total_interest=getattr(cost, "total_interest", None),
        total_insurance_cost=getattr(cost, "total_insurance_cost", None),
        effective_annual_rate=getattr(cost, "effective_annual_rate", None),
    )


def to_http_error(e: DomainException, request_id: str) -> HTTPException:
    """Map domain failures to HTTP status codes with the user-facing message"""
    if isinstance(e, RateLimited):
        headers = None
        if e.retry_after_seconds is not None:
            headers = {"Retry-After": str(max(1, round(e.retry_after_seconds)))}
        logging.warning(f"Advisory rate limited: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=429, detail=e.user_message, headers=headers)
    if isinstance(e, AnalysisInProgress):
        return HTTPException(status_code=409, detail=e.user_message)
    if isinstance(e, (TransientServiceError, AdvisoryConfigurationError, AnalysisCancelled)):
        logging.error(f"Advisory service unavailable: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail=e.user_message)
    if isinstance(e, (ClientServiceError, MalformedResponse)):
        logging.error(f"Advisory service error: {e}", extra={"request_id": request_id})
        return HTTPException(status_code=502, detail=e.user_message)

    logging.warning(f"Invalid input: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=422, detail=e.user_message)


@router.post("/cost", response_model=CostResponse)
def compute_cost_breakdown(
    request_body: AnalysisRequest,
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
):
    """Validated cost breakdown for a product, without advice"""
    request_id = get_request_id(request)
    try:
        inputs = to_loan_inputs(request_body.product, request_body.inputs)
        cost = service.cost_only(request_body.product, inputs)
    except DomainException as e:
        raise to_http_error(e, request_id)

    return to_cost_response(cost)


@router.post("/analysis", response_model=AnalysisResponse)
async def create_analysis(
    request_body: AnalysisRequest,
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Decide between financing and paying from savings.

    Flow:
    1. Merge inputs over the product defaults
    2. Validate and compute the cost breakdown
    3. Request advice from the advisory service (rate limited, retried)
    4. Return cost, advice and the cost vs. growth comparison
    """
    request_id = get_request_id(request)

    try:
        inputs = to_loan_inputs(request_body.product, request_body.inputs)
        result = await service.analyze(request_body.product, inputs, request_id=request_id)
    except DomainException as e:
        raise to_http_error(e, request_id)

    return AnalysisResponse(
        cost=to_cost_response(result.cost),
        advice=AdviceSchema(
            recommendation=result.advice.recommendation.value,
            summary=result.advice.summary,
            detailed_analysis=result.advice.detailed_analysis,
            projected_investment_growth=result.advice.projected_investment_growth,
        ),
        comparison=ComparisonSchema(
            final_cost=result.comparison.final_cost,
            investment_gain=result.comparison.investment_gain,
        ),
    )
