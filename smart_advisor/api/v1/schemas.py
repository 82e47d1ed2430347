"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class PortfolioItemSchema(BaseModel):
    """Single asset; numeric fields accepted as free-form text"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    name: str = Field("", max_length=200)
    amount: str = ""
    return_rate: str = ""


class LoanInputsSchema(BaseModel):
    """Financing inputs; omitted fields fall back to the product defaults"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    principal: Optional[str] = None
    annual_rate: Optional[str] = None
    term_months: Optional[str] = None
    origination_fee: Optional[str] = None
    insurance_cost: Optional[str] = None
    collection_fee: Optional[str] = None
    monthly_insurance_premium: Optional[str] = None
    brokerage_commission: Optional[str] = None
    file_management_fee: Optional[str] = None
    spread: Optional[str] = None
    reference_rate: Optional[str] = None
    notarial_costs: Optional[str] = None
    mandatory_insurance: Optional[str] = None
    substitute_tax: Optional[str] = None
    liquid_savings: Optional[str] = None
    portfolio: Optional[List[PortfolioItemSchema]] = None


class AnalysisRequest(BaseModel):
    """Request body for POST /v1/analysis and POST /v1/cost"""

    product: str = Field(..., description="Loan | Installment | Mortgage")
    inputs: LoanInputsSchema = Field(default_factory=LoanInputsSchema)


class CostResponse(BaseModel):
    """Cost breakdown; product-specific fields are null for other products"""

    product: str
    monthly_installment: float
    final_cost: float
    total_interest: Optional[float] = None
    total_insurance_cost: Optional[float] = None
    effective_annual_rate: Optional[float] = None


class AdviceSchema(BaseModel):
    recommendation: str
    summary: str
    detailed_analysis: str
    projected_investment_growth: float


class ComparisonSchema(BaseModel):
    final_cost: float
    investment_gain: float


class AnalysisResponse(BaseModel):
    """Response for POST /v1/analysis"""

    cost: CostResponse
    advice: AdviceSchema
    comparison: ComparisonSchema


class InvestmentRequest(BaseModel):
    """Request body for POST /v1/investment; portfolio amounts are % allocations"""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    investment_amount: str = "10000"
    time_horizon_years: str = "10"
    portfolio: List[PortfolioItemSchema] = Field(default_factory=list)


class InvestmentResponse(BaseModel):
    """Response for POST /v1/investment"""

    projected_value: float
    total_return: float
    annualized_return: float
    inflation_adjusted_value: float


class DefaultsResponse(BaseModel):
    """Response for GET /v1/products/{product}/defaults"""

    product: str
    inputs: LoanInputsSchema
