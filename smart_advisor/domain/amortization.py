"""Amortization and cost engine - installment and total cost per financing product"""

from smart_advisor.domain.coercion import parse_number
from smart_advisor.domain.models import (
    CostResult,
    InstallmentCost,
    LoanCost,
    LoanInputs,
    MortgageCost,
    ProductType,
)


def annuity_payment(principal: float, monthly_rate: float, periods: float) -> float:
    """
    Fixed monthly payment fully amortizing `principal` over `periods` months.

    Formula:
        r <= 0: C / n  (zero-interest, no division by zero)
        r > 0:  C * r * (1+r)^n / ((1+r)^n - 1)

    A non-positive principal or term is "not yet computable" and yields 0.
    """
    if principal <= 0 or periods <= 0:
        return 0.0
    if monthly_rate <= 0:
        return principal / periods
    power_term = (1 + monthly_rate) ** periods
    return principal * (monthly_rate * power_term) / (power_term - 1)


def _loan_cost(inputs: LoanInputs, principal: float, periods: float) -> LoanCost:
    monthly_rate = parse_number(inputs.annual_rate) / 12 / 100
    payment = annuity_payment(principal, monthly_rate, periods)
    total_interest = payment * periods - principal

    final_cost = (
        total_interest
        + parse_number(inputs.origination_fee)
        + parse_number(inputs.insurance_cost)
        + parse_number(inputs.collection_fee) * periods
    )
    return LoanCost(monthly_installment=payment, final_cost=final_cost, total_interest=total_interest)


def _installment_cost(inputs: LoanInputs, principal: float, periods: float) -> InstallmentCost:
    monthly_rate = parse_number(inputs.annual_rate) / 12 / 100
    payment = annuity_payment(principal, monthly_rate, periods)
    total_interest = payment * periods - principal
    total_insurance = parse_number(inputs.monthly_insurance_premium) * periods

    final_cost = (
        total_interest
        + parse_number(inputs.brokerage_commission)
        + parse_number(inputs.file_management_fee)
        + total_insurance
    )
    return InstallmentCost(
        monthly_installment=payment,
        final_cost=final_cost,
        total_interest=total_interest,
        total_insurance_cost=total_insurance,
    )


def _mortgage_cost(inputs: LoanInputs, principal: float, periods: float) -> MortgageCost:
    # Variable reference index plus the bank's fixed spread
    effective_rate = parse_number(inputs.reference_rate) + parse_number(inputs.spread)
    payment = annuity_payment(principal, effective_rate / 100 / 12, periods)
    total_interest = payment * periods - principal

    final_cost = (
        total_interest
        + parse_number(inputs.origination_fee)
        + parse_number(inputs.notarial_costs)
        + parse_number(inputs.mandatory_insurance) * periods
        + parse_number(inputs.substitute_tax)
    )
    return MortgageCost(
        monthly_installment=payment,
        final_cost=final_cost,
        effective_annual_rate=effective_rate,
        total_interest=total_interest,
    )


_CALCULATORS = {
    ProductType.LOAN: _loan_cost,
    ProductType.INSTALLMENT: _installment_cost,
    ProductType.MORTGAGE: _mortgage_cost,
}

_EMPTY_RESULTS = {
    ProductType.LOAN: lambda: LoanCost(monthly_installment=0.0, final_cost=0.0),
    ProductType.INSTALLMENT: lambda: InstallmentCost(monthly_installment=0.0, final_cost=0.0),
    ProductType.MORTGAGE: lambda: MortgageCost(monthly_installment=0.0, final_cost=0.0),
}


def compute_cost(product: ProductType | str, inputs: LoanInputs) -> CostResult:
    """
    Main entry point: cost breakdown for the selected product.

    Fields are read leniently (unparsable -> 0); gating happens upstream in
    input validation. No rounding is applied, that is a presentation concern.

    Raises:
        UnsupportedProduct: If product is not Loan, Installment or Mortgage
    """
    product = ProductType.parse(product)
    principal = parse_number(inputs.principal)
    periods = parse_number(inputs.term_months)

    if principal <= 0 or periods <= 0:
        return _EMPTY_RESULTS[product]()

    return _CALCULATORS[product](inputs, principal, periods)
