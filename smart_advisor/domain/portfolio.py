"""Portfolio aggregation and the portfolio item collection"""

import uuid
from typing import Iterable, List

from smart_advisor.config import settings
from smart_advisor.domain.coercion import is_valid_number, parse_number, sanitize_numeric_text, sanitize_text
from smart_advisor.domain.exceptions import InvalidAllocation
from smart_advisor.domain.models import PortfolioItem, PortfolioSummary
from smart_advisor.domain.validation import MAX_ASSET_AMOUNT, MAX_RETURN_RATE, MIN_RETURN_RATE

ALLOCATION_TOLERANCE = 0.01


def weighted_return(items: Iterable[PortfolioItem], default_rate: float | None = None) -> PortfolioSummary:
    """
    Amount-weighted average return of a portfolio.

    Rules:
    - Empty portfolio: conservative default (3% unless overridden), nothing invested
    - All amounts zero: 0% to avoid division by zero
    - Otherwise normalized by the actual sum of amounts, so partial or
      non-normalized allocations still work as weights

    Callers using percentage allocations must check the sum with
    validate_allocation() before trusting the result.
    """
    items = list(items)
    if not items:
        rate = settings.default_portfolio_return if default_rate is None else default_rate
        return PortfolioSummary(weighted_return=rate, total_invested=0.0)

    amounts = [parse_number(item.amount) for item in items]
    rates = [parse_number(item.return_rate) for item in items]
    total = sum(amounts)

    if total == 0:
        return PortfolioSummary(weighted_return=0.0, total_invested=0.0)

    weighted = sum(amount * rate for amount, rate in zip(amounts, rates)) / total
    return PortfolioSummary(weighted_return=weighted, total_invested=total)


def validate_allocation(items: Iterable[PortfolioItem]) -> None:
    """
    Percentage allocations must add up to 100%.

    Raises:
        InvalidAllocation: If the sum is off by more than 0.01
    """
    total = sum(parse_number(item.amount) for item in items)
    if abs(total - 100) > ALLOCATION_TOLERANCE:
        raise InvalidAllocation(f"Portfolio allocation sums to {total:g}%, expected 100%")


def total_assets(liquid_savings: str, summary: PortfolioSummary) -> float:
    """Liquid savings plus everything invested"""
    return parse_number(liquid_savings, minimum=0) + summary.total_invested


class Portfolio:
    """
    Collection owning the user's portfolio items.

    Ids are random UUIDs generated on add and never reused. Edits are
    sanitized; an edit failing its bounds is ignored and the previous
    value kept.
    """

    def __init__(self, items: List[PortfolioItem] | None = None, max_amount: float = MAX_ASSET_AMOUNT):
        self.items: List[PortfolioItem] = list(items or [])
        self.max_amount = max_amount

    @classmethod
    def allocations(cls, items: List[PortfolioItem] | None = None) -> "Portfolio":
        """Portfolio whose amounts are percentage weights"""
        return cls(items, max_amount=100)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def add(self, name: str = "", amount: str = "", return_rate: str = "") -> PortfolioItem:
        item = PortfolioItem(id=uuid.uuid4().hex, name=sanitize_text(name))
        self.items.append(item)
        self.update(item.id, "amount", amount)
        self.update(item.id, "return_rate", return_rate)
        return item

    def remove(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item.id != item_id]
        return len(self.items) < before

    def update(self, item_id: str, field: str, value: str) -> bool:
        """
        Set one field of an item.

        Returns:
            True if the value was applied, False if the item is unknown or
            the value failed validation
        """
        item = next((i for i in self.items if i.id == item_id), None)
        if item is None:
            return False

        if field == "name":
            item.name = sanitize_text(value)
            return True

        if field == "amount":
            bounds = (0, self.max_amount)
        elif field == "return_rate":
            bounds = (MIN_RETURN_RATE, MAX_RETURN_RATE)
        else:
            raise ValueError(f"Unknown portfolio field: {field}")

        sanitized = sanitize_numeric_text(value)
        if not is_valid_number(sanitized, *bounds):
            return False
        setattr(item, field, sanitized)
        return True

    def summary(self) -> PortfolioSummary:
        return weighted_return(self.items)
