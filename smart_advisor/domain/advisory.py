"""Advisory request context and response validation"""

import json
import math
import re
from typing import Any, Dict

from smart_advisor.domain.coercion import parse_number, sanitize_text
from smart_advisor.domain.exceptions import MalformedResponse
from smart_advisor.domain.models import (
    AdvisoryResult,
    CostComparison,
    CostResult,
    LoanInputs,
    PortfolioSummary,
    ProductType,
    Recommendation,
)
from smart_advisor.domain.portfolio import total_assets

REQUIRED_FIELDS = ("recommendation", "summary", "detailedAnalysis", "projectedInvestmentGrowth")

# Structured-output schema in the Gemini OpenAPI subset
RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "recommendation": {
            "type": "STRING",
            "enum": [r.value for r in Recommendation],
            "description": "Final recommendation. 'Finance' if taking the financing is better, "
            "'UseSavings' if paying from savings is better.",
        },
        "summary": {
            "type": "STRING",
            "description": "A short, one-sentence summary of the recommendation.",
        },
        "detailedAnalysis": {
            "type": "STRING",
            "description": "A paragraph explaining the reasoning. Compare the opportunity cost of using "
            "savings (investment gains) with the total final cost of the financing. Assume a typical "
            "3% inflation rate. If recommending savings, be specific about which funds (liquid or "
            "invested) should be used.",
        },
        "projectedInvestmentGrowth": {
            "type": "NUMBER",
            "description": "Total projected profit from investing the requested amount for the duration "
            "of the financing: future value minus initial capital.",
        },
    },
    "required": list(REQUIRED_FIELDS),
}

PRODUCT_CONTEXT = {
    ProductType.LOAN: "I am considering applying for a personal loan.",
    ProductType.INSTALLMENT: "I am considering opening an installment financing plan.",
    ProductType.MORTGAGE: "I am considering taking out a mortgage to buy a property.",
}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def format_portfolio(inputs: LoanInputs) -> str:
    if not inputs.portfolio:
        return "No investments in the portfolio."
    return "\n".join(
        f"  - {sanitize_text(item.name) or 'Unnamed asset'}: {parse_number(item.amount):.2f} EUR "
        f"(expected annual return: {parse_number(item.return_rate):.2f}%)"
        for item in inputs.portfolio
    )


def format_cost_breakdown(cost: CostResult) -> str:
    lines = [f"- Monthly installment: {cost.monthly_installment:.2f} EUR"]
    if hasattr(cost, "effective_annual_rate"):
        lines.append(f"- Effective annual rate (reference + spread): {cost.effective_annual_rate:.2f}%")
    if hasattr(cost, "total_interest"):
        lines.append(f"- Total interest: {cost.total_interest:.2f} EUR")
    if hasattr(cost, "total_insurance_cost"):
        lines.append(f"- Total insurance cost: {cost.total_insurance_cost:.2f} EUR")
    lines.append(
        f"- **Total final cost of the financing (interest + all fees): {cost.final_cost:.2f} EUR**"
    )
    return "\n".join(lines)


def build_prompt(
    inputs: LoanInputs,
    product: ProductType,
    cost: CostResult,
    portfolio: PortfolioSummary,
) -> str:
    """Natural-language context bundle sent to the advisory service"""
    principal = parse_number(inputs.principal)
    term = parse_number(inputs.term_months)
    savings = parse_number(inputs.liquid_savings, minimum=0)
    assets = total_assets(inputs.liquid_savings, portfolio)
    rate = portfolio.weighted_return

    return f"""
Act as an expert financial advisor. {PRODUCT_CONTEXT[product]}
I need to make a decision about an amount of {principal:.2f} EUR.

My detailed financial situation:
- Liquid savings (not invested): {savings:.2f} EUR
- Investment portfolio:
{format_portfolio(inputs)}
- Total invested: {portfolio.total_invested:.2f} EUR
- Total assets (liquid + invested): {assets:.2f} EUR
- Weighted average annual portfolio return: {rate:.2f}%

I have calculated the total cost of the requested financing:
- Financing type: {product.value}
- Requested amount: {principal:.2f} EUR
- Duration: {term:g} months
{format_cost_breakdown(cost)}

Analyze these two scenarios:
1. **Take the financing:** the total cost will be {cost.final_cost:.2f} EUR. My savings and investments stay intact and keep generating returns.
2. **Use savings:** I use {principal:.2f} EUR of my assets for the purchase, reducing my assets and my future earning potential.

Compare the **total final cost of the financing** with the **opportunity cost** of using my funds, i.e. the potential gain I would give up by divesting or spending liquid savings.

If you recommend using savings, say whether it is better to use liquid savings first (zero return) or to sell part of the investments (and which ones, if possible).

Assume a standard inflation rate of about 3% per year.

Compute the **net profit** (total gain minus initial capital) of investing {principal:.2f} EUR for {term:g} months at an annual return of {rate:.2f}%. This is the main opportunity cost; return it in the 'projectedInvestmentGrowth' field.

Answer in JSON following the declared schema.
""".strip()


def parse_advice(text: str | None) -> AdvisoryResult:
    """
    Parse and validate the advisory response body.

    Tolerates a ```json fence some providers wrap around the payload.

    Raises:
        MalformedResponse: Empty/unparsable body, missing fields, wrong types
            or a recommendation outside the allowed values
    """
    if not text or not text.strip():
        raise MalformedResponse("Advisory service returned an empty response")

    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Advisory response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse("Advisory response is not a JSON object")

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise MalformedResponse(f"Advisory response missing fields: {', '.join(missing)}")

    try:
        recommendation = Recommendation(data["recommendation"])
    except ValueError as e:
        raise MalformedResponse(f"Unknown recommendation: {data['recommendation']!r}") from e

    summary = data["summary"]
    detailed = data["detailedAnalysis"]
    growth = data["projectedInvestmentGrowth"]

    if not isinstance(summary, str) or not isinstance(detailed, str):
        raise MalformedResponse("Advisory summary and detailedAnalysis must be strings")
    if isinstance(growth, bool) or not isinstance(growth, (int, float)) or not math.isfinite(growth):
        raise MalformedResponse("Advisory projectedInvestmentGrowth must be a finite number")

    return AdvisoryResult(
        recommendation=recommendation,
        summary=summary,
        detailed_analysis=detailed,
        projected_investment_growth=float(growth),
    )


def build_comparison(cost: CostResult, advice: AdvisoryResult) -> CostComparison:
    """Financing cost against foregone growth; negative growth shown as no gain"""
    return CostComparison(
        final_cost=cost.final_cost,
        investment_gain=max(0.0, advice.projected_investment_growth),
    )
