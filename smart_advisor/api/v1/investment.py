"""POST /v1/investment - standalone investment projection"""

from fastapi import APIRouter, Request

from smart_advisor.api.v1.analysis import to_http_error, to_portfolio_items
from smart_advisor.api.v1.schemas import InvestmentRequest, InvestmentResponse
from smart_advisor.api.dependencies import get_request_id
from smart_advisor.domain.exceptions import DomainException
from smart_advisor.domain.projection import analyze_investment

router = APIRouter()


@router.post("/investment", response_model=InvestmentResponse)
def create_investment_projection(request_body: InvestmentRequest, request: Request):
    """
    Project compound growth of an investment.

    Portfolio amounts are percentage allocations that must add up to 100;
    an empty portfolio uses a conservative 3% return.
    """
    request_id = get_request_id(request)

    try:
        result = analyze_investment(
            request_body.investment_amount,
            request_body.time_horizon_years,
            to_portfolio_items(request_body.portfolio),
        )
    except DomainException as e:
        raise to_http_error(e, request_id)

    return InvestmentResponse(
        projected_value=result.projected_value,
        total_return=result.total_return,
        annualized_return=result.annualized_return,
        inflation_adjusted_value=result.inflation_adjusted_value,
    )
