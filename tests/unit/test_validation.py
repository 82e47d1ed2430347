"""Unit tests for loan input validation"""

import pytest
from dataclasses import replace
from smart_advisor.domain.exceptions import InvalidNumber, UnsupportedProduct
from smart_advisor.domain.models import LoanInputs, PortfolioItem, ProductType
from smart_advisor.domain.validation import validate_loan_inputs, validate_portfolio_item


@pytest.mark.parametrize("product", list(ProductType))
def test_product_defaults_are_valid(product):
    assert validate_loan_inputs(product, LoanInputs.defaults(product)) == product


@pytest.mark.parametrize(
    "field,value",
    [
        ("principal", "0"),
        ("principal", ""),
        ("principal", "20000000"),
        ("term_months", "0"),
        ("term_months", "601"),
        ("term_months", "12.5"),
        ("annual_rate", "0"),
        ("annual_rate", "101"),
        ("origination_fee", "200000"),
        ("collection_fee", "-1"),
        ("liquid_savings", "-50"),
    ],
)
def test_loan_rejects_out_of_bounds_fields(field, value):
    inputs = replace(LoanInputs.defaults(ProductType.LOAN), **{field: value})

    with pytest.raises(InvalidNumber) as exc_info:
        validate_loan_inputs(ProductType.LOAN, inputs)

    assert exc_info.value.field == field


def test_blank_fees_are_accepted():
    inputs = replace(LoanInputs.defaults(ProductType.LOAN), origination_fee="", insurance_cost="")

    validate_loan_inputs(ProductType.LOAN, inputs)


def test_zero_interest_installment_is_valid():
    inputs = replace(LoanInputs.defaults(ProductType.INSTALLMENT), annual_rate="0")

    validate_loan_inputs(ProductType.INSTALLMENT, inputs)


def test_mortgage_checks_spread_not_nominal_rate():
    inputs = replace(LoanInputs.defaults(ProductType.MORTGAGE), annual_rate="", spread="-0.5")
    validate_loan_inputs(ProductType.MORTGAGE, inputs)

    with pytest.raises(InvalidNumber) as exc_info:
        validate_loan_inputs(ProductType.MORTGAGE, replace(inputs, reference_rate="150"))

    assert exc_info.value.field == "reference_rate"


def test_fees_of_other_products_ignored():
    inputs = replace(LoanInputs.defaults(ProductType.LOAN), notarial_costs="-999")

    validate_loan_inputs(ProductType.LOAN, inputs)


def test_unsupported_product():
    with pytest.raises(UnsupportedProduct):
        validate_loan_inputs("Leasing", LoanInputs())


def test_portfolio_item_bounds():
    validate_portfolio_item(PortfolioItem(id="a", name="ETF", amount="", return_rate="-20"))

    with pytest.raises(InvalidNumber):
        validate_portfolio_item(PortfolioItem(id="a", name="ETF", amount="1000", return_rate="-150"))
    with pytest.raises(InvalidNumber):
        validate_portfolio_item(PortfolioItem(id="a", name="ETF", amount="150", return_rate="5"), max_amount=100)


def test_invalid_portfolio_item_rejects_inputs():
    inputs = LoanInputs.defaults(ProductType.LOAN)
    inputs.portfolio = [PortfolioItem(id="bad", name="ETF", amount="1000", return_rate="500")]

    with pytest.raises(InvalidNumber) as exc_info:
        validate_loan_inputs(ProductType.LOAN, inputs)

    assert exc_info.value.field == "portfolio[bad].return_rate"
