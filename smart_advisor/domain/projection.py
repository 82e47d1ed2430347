"""Investment projection engine - compound growth with inflation adjustment"""

import math
from typing import Iterable

from smart_advisor.config import settings
from smart_advisor.domain.coercion import coerce_number
from smart_advisor.domain.exceptions import InvalidHorizon, InvalidNumber, InvalidPrincipal
from smart_advisor.domain.models import InvestmentResult, PortfolioItem
from smart_advisor.domain.portfolio import validate_allocation, weighted_return
from smart_advisor.domain.validation import MAX_PRINCIPAL, MAX_RETURN_RATE, MIN_RETURN_RATE, validate_portfolio_item

MAX_HORIZON_YEARS = 100


def project(
    principal: float,
    annual_rate_percent: float,
    years: float,
    inflation_rate: float | None = None,
) -> InvestmentResult:
    """
    Compound `principal` annually at `annual_rate_percent` for `years`.

    Annual compounding is a deliberate simplification. Inflation defaults to
    3% per year.

    Raises:
        InvalidPrincipal: principal <= 0 or non-finite
        InvalidHorizon: years <= 0, non-finite, or a horizon that overflows
        InvalidNumber: rate outside [-100, 100]
    """
    if inflation_rate is None:
        inflation_rate = settings.inflation_rate

    if not math.isfinite(principal) or principal <= 0:
        raise InvalidPrincipal(f"Principal must be positive, got {principal}")
    if not math.isfinite(years) or years <= 0:
        raise InvalidHorizon(f"Horizon must be positive, got {years}")
    if not math.isfinite(annual_rate_percent) or not MIN_RETURN_RATE <= annual_rate_percent <= MAX_RETURN_RATE:
        raise InvalidNumber("annual_rate", f"must be between {MIN_RETURN_RATE} and {MAX_RETURN_RATE}")

    try:
        future_value = principal * math.pow(1 + annual_rate_percent / 100, years)
        annualized = (math.pow(future_value / principal, 1 / years) - 1) * 100
        inflation_adjusted = future_value / math.pow(1 + inflation_rate, years)
    except OverflowError as e:
        raise InvalidHorizon(f"Projection overflows over {years} years") from e

    result = InvestmentResult(
        projected_value=future_value,
        total_return=future_value - principal,
        annualized_return=annualized,
        inflation_adjusted_value=inflation_adjusted,
    )
    if not all(math.isfinite(v) for v in vars(result).values()):
        raise InvalidHorizon(f"Projection is not finite over {years} years")
    return result


def analyze_investment(
    amount: str,
    years: str,
    portfolio: Iterable[PortfolioItem] = (),
) -> InvestmentResult:
    """
    Standalone investment analysis from raw form inputs.

    Flow:
    1. Coerce amount (1 - 10,000,000) and horizon (1 - 100 years)
    2. Empty portfolio: conservative default return
    3. Otherwise allocations must sum to 100% and their weighted return is used
    4. Project compound growth
    """
    principal = coerce_number(amount, 1, MAX_PRINCIPAL, field="investment_amount")
    horizon = coerce_number(years, 1, MAX_HORIZON_YEARS, field="time_horizon_years")

    items = list(portfolio)
    for item in items:
        validate_portfolio_item(item, max_amount=100)
    if items:
        validate_allocation(items)

    rate = weighted_return(items).weighted_return
    return project(principal, rate, horizon)
