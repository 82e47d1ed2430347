"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import List, Optional

from smart_advisor.domain.exceptions import UnsupportedProduct


class ProductType(str, Enum):
    """Financing product being evaluated"""

    LOAN = "Loan"
    INSTALLMENT = "Installment"
    MORTGAGE = "Mortgage"

    @classmethod
    def parse(cls, value: object) -> "ProductType":
        """Resolve a product name, rejecting anything but the three known variants"""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedProduct(value) from None


class Recommendation(str, Enum):
    """Final advice returned by the advisory service"""

    FINANCE = "Finance"
    USE_SAVINGS = "UseSavings"
    UNDECIDED = "Undecided"


class CircuitState(str, Enum):
    """Circuit breaker state for an endpoint"""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class PortfolioItem:
    """Single asset in the user's portfolio (numeric fields kept as raw strings)"""

    id: str
    name: str = ""
    amount: str = ""
    return_rate: str = ""


@dataclass
class LoanInputs:
    """Raw financing inputs as entered by the user"""

    principal: str = "15000"
    annual_rate: str = "7.5"  # Nominal annual rate (%)
    term_months: str = "60"

    # Loan
    origination_fee: str = "200"  # Also used by Mortgage
    insurance_cost: str = "0"
    collection_fee: str = "2"  # Per installment

    # Installment
    monthly_insurance_premium: str = "15"
    brokerage_commission: str = "300"
    file_management_fee: str = "150"

    # Mortgage
    spread: str = "1.5"
    reference_rate: str = "2.0"
    notarial_costs: str = "2500"
    mandatory_insurance: str = "20"  # Monthly
    substitute_tax: str = "500"

    liquid_savings: str = "5000"
    portfolio: List[PortfolioItem] = field(default_factory=list)

    @classmethod
    def defaults(cls, product: "ProductType", keep_from: Optional["LoanInputs"] = None) -> "LoanInputs":
        """
        Fresh inputs with the product's defaults.

        Switching product resets every field except liquid savings and
        portfolio, which are carried over from `keep_from`.
        """
        overrides = PRODUCT_DEFAULTS[ProductType.parse(product)]
        inputs = replace(cls(), **overrides)
        if keep_from is not None:
            inputs.liquid_savings = keep_from.liquid_savings
            inputs.portfolio = list(keep_from.portfolio)
        return inputs

    def snapshot(self) -> tuple:
        """Hashable view of every field, used to detect overlapping analyses"""
        values = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "portfolio":
                value = tuple((i.name, i.amount, i.return_rate) for i in value)
            values.append(value)
        return tuple(values)


PRODUCT_DEFAULTS = {
    ProductType.LOAN: {"principal": "15000", "term_months": "60", "annual_rate": "7.5"},
    ProductType.INSTALLMENT: {"principal": "8000", "term_months": "36", "annual_rate": "9.0"},
    ProductType.MORTGAGE: {
        "principal": "200000",
        "term_months": "300",
        "spread": "1.5",
        "reference_rate": "2.5",
    },
}


@dataclass(frozen=True)
class CostResult:
    """
    Cost breakdown shared by every product.

    Variants fix `product` so a breakdown can never carry another
    product's sub-costs.
    """

    monthly_installment: float
    final_cost: float
    product: ProductType = field(init=False)


@dataclass(frozen=True)
class LoanCost(CostResult):
    total_interest: float = 0.0
    product: ProductType = field(init=False, default=ProductType.LOAN)


@dataclass(frozen=True)
class InstallmentCost(CostResult):
    total_interest: float = 0.0
    total_insurance_cost: float = 0.0
    product: ProductType = field(init=False, default=ProductType.INSTALLMENT)


@dataclass(frozen=True)
class MortgageCost(CostResult):
    effective_annual_rate: float = 0.0
    total_interest: float = 0.0
    product: ProductType = field(init=False, default=ProductType.MORTGAGE)


@dataclass
class PortfolioSummary:
    """Weighted return (%) and total invested amount of a portfolio"""

    weighted_return: float
    total_invested: float


@dataclass
class AdvisoryResult:
    """Validated advice from the advisory service"""

    recommendation: Recommendation
    summary: str
    detailed_analysis: str
    projected_investment_growth: float


@dataclass
class CostComparison:
    """Total financing cost against the growth foregone by using savings"""

    final_cost: float
    investment_gain: float


@dataclass
class Analysis:
    """Outcome of a complete financing analysis"""

    product: ProductType
    cost: CostResult
    advice: AdvisoryResult
    comparison: CostComparison


@dataclass
class RateLimitDecision:
    """Admission decision for one outbound advisory request"""

    allowed: bool
    reason: Optional[str] = None
    retry_after_seconds: Optional[float] = None


@dataclass
class InvestmentResult:
    """Compound growth projection"""

    projected_value: float
    total_return: float
    annualized_return: float  # Percentage
    inflation_adjusted_value: float
