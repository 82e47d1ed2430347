"""Input validation gating a cost calculation"""

from typing import Dict, Tuple

from smart_advisor.domain.coercion import coerce_number, sanitize_numeric_text
from smart_advisor.domain.exceptions import InvalidNumber
from smart_advisor.domain.models import LoanInputs, PortfolioItem, ProductType

MAX_PRINCIPAL = 10_000_000
MAX_TERM_MONTHS = 600
MAX_ASSET_AMOUNT = 999_999_999
MIN_RETURN_RATE = -100
MAX_RETURN_RATE = 100

# (min, max) per fee field
FEE_BOUNDS: Dict[str, Tuple[float, float]] = {
    "origination_fee": (0, 100_000),
    "insurance_cost": (0, 100_000),
    "collection_fee": (0, 1_000),
    "monthly_insurance_premium": (0, 10_000),
    "brokerage_commission": (0, 100_000),
    "file_management_fee": (0, 100_000),
    "notarial_costs": (0, 500_000),
    "mandatory_insurance": (0, 10_000),
    "substitute_tax": (0, 500_000),
}

# Fee fields relevant to each product
PRODUCT_FEES: Dict[ProductType, Tuple[str, ...]] = {
    ProductType.LOAN: ("origination_fee", "insurance_cost", "collection_fee"),
    ProductType.INSTALLMENT: ("monthly_insurance_premium", "brokerage_commission", "file_management_fee"),
    ProductType.MORTGAGE: ("origination_fee", "notarial_costs", "mandatory_insurance", "substitute_tax"),
}


def _optional_fee(inputs: LoanInputs, name: str) -> None:
    # Blank fees count as zero; anything typed must be within bounds
    raw = getattr(inputs, name)
    if sanitize_numeric_text(raw) == "":
        return
    minimum, maximum = FEE_BOUNDS[name]
    coerce_number(raw, minimum, maximum, field=name)


def validate_portfolio_item(item: PortfolioItem, max_amount: float = MAX_ASSET_AMOUNT) -> None:
    """Amount and return bounds for a single asset; blank fields count as zero"""
    if sanitize_numeric_text(item.amount) != "":
        coerce_number(item.amount, 0, max_amount, field=f"portfolio[{item.id}].amount")
    if sanitize_numeric_text(item.return_rate) != "":
        coerce_number(
            item.return_rate, MIN_RETURN_RATE, MAX_RETURN_RATE, field=f"portfolio[{item.id}].return_rate"
        )


def validate_loan_inputs(product: ProductType | str, inputs: LoanInputs) -> ProductType:
    """
    Check every field the product's calculation depends on.

    Returns:
        The resolved ProductType

    Raises:
        UnsupportedProduct: Unknown product
        InvalidNumber: First field failing its bounds
    """
    product = ProductType.parse(product)

    principal = coerce_number(inputs.principal, 0, MAX_PRINCIPAL, field="principal")
    if principal <= 0:
        raise InvalidNumber("principal", f"must be between 1 and {MAX_PRINCIPAL:,}")

    term = coerce_number(inputs.term_months, 1, MAX_TERM_MONTHS, field="term_months")
    if term != int(term):
        raise InvalidNumber("term_months", "must be a whole number of months")

    if product == ProductType.MORTGAGE:
        coerce_number(inputs.spread, MIN_RETURN_RATE, MAX_RETURN_RATE, field="spread")
        coerce_number(inputs.reference_rate, MIN_RETURN_RATE, MAX_RETURN_RATE, field="reference_rate")
    else:
        rate = coerce_number(inputs.annual_rate, 0, MAX_RETURN_RATE, field="annual_rate")
        # Zero-interest installment plans exist, personal loans always carry a rate
        if product == ProductType.LOAN and rate <= 0:
            raise InvalidNumber("annual_rate", "must be greater than 0")

    for name in PRODUCT_FEES[product]:
        _optional_fee(inputs, name)

    if sanitize_numeric_text(inputs.liquid_savings) != "":
        coerce_number(inputs.liquid_savings, 0, MAX_ASSET_AMOUNT, field="liquid_savings")

    for item in inputs.portfolio:
        validate_portfolio_item(item)

    return product
