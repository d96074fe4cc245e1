from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from errors import InvalidRange
from models import Budget, Transaction, TransactionType
from schemas import PeriodTotals


ZERO = Decimal("0")


@dataclass(frozen=True)
class Period:
    """Half-open accounting window ``[start, end)``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidRange("Period end must not be before its start")

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    @classmethod
    def closing(cls, start: date, last_day: date) -> "Period":
        """Window for a period closed on ``last_day`` (inclusive)."""
        if last_day < start:
            raise InvalidRange("End date must be on or after start date")
        return cls(start, last_day + timedelta(days=1))


def _budget_spending(
    transactions: Iterable[Transaction],
    budget: Budget,
    period: Period,
    owner: Optional[int],
) -> tuple[Decimal, dict[str, Decimal]]:
    categories = set(budget.categories or [])
    spent = ZERO
    by_category: dict[str, Decimal] = {}
    for txn in transactions:
        if owner is not None and txn.user_id != owner:
            continue
        if txn.type != TransactionType.expense or not period.contains(txn.date):
            continue
        if txn.category not in categories:
            continue
        amount = Decimal(txn.amount)
        spent += amount
        by_category[txn.category] = by_category.get(txn.category, ZERO) + amount
    return spent, by_category


def compute_totals(
    transactions: Iterable[Transaction],
    budget: Budget,
    period_start: date,
    period_end: date,
) -> PeriodTotals:
    period = Period(period_start, period_end)
    spent, by_category = _budget_spending(
        transactions, budget, period, owner=budget.user_id
    )
    return PeriodTotals(
        total_spent=spent,
        total_saved=max(ZERO, Decimal(budget.amount) - spent),
        category_spending=by_category,
    )


def compute_period_totals(
    transactions: Iterable[Transaction],
    budgets: Iterable[Budget],
    period_start: date,
    period_end: date,
    owner: Optional[int] = None,
) -> PeriodTotals:
    """Totals across all of an owner's budgets, as stored at period close."""
    period = Period(period_start, period_end)
    transactions = list(transactions)
    total_budget = ZERO
    total_spent = ZERO
    category_spending: dict[str, Decimal] = {}
    for budget in budgets:
        if owner is not None and budget.user_id != owner:
            continue
        if Decimal(budget.amount) <= 0:
            continue
        total_budget += Decimal(budget.amount)
        spent, by_category = _budget_spending(
            transactions, budget, period, owner=budget.user_id
        )
        total_spent += spent
        for category, amount in by_category.items():
            category_spending[category] = (
                category_spending.get(category, ZERO) + amount
            )
    return PeriodTotals(
        total_spent=total_spent,
        total_saved=max(ZERO, total_budget - total_spent),
        category_spending=category_spending,
    )
