from datetime import date
from decimal import Decimal

import pytest

from errors import InvalidRange
from models import Budget, BudgetPeriodicity, TransactionType
from periods import Period, compute_period_totals, compute_totals


def _budget(amount="500.00", categories=("Groceries", "Dining"), user_id=1):
    return Budget(
        id=1,
        user_id=user_id,
        description="Food",
        amount=Decimal(amount),
        period=BudgetPeriodicity.monthly,
        categories=list(categories),
    )


def test_overspent_budget_saves_nothing(make_transaction):
    txns = [
        make_transaction(amount=Decimal("400.00"), date=date(2024, 3, 3)),
        make_transaction(
            amount=Decimal("220.00"), category="Dining", date=date(2024, 3, 20)
        ),
    ]

    totals = compute_totals(txns, _budget(), date(2024, 3, 1), date(2024, 4, 1))

    assert totals.total_spent == Decimal("620.00")
    assert totals.total_saved == Decimal("0")
    assert totals.category_spending == {
        "Groceries": Decimal("400.00"),
        "Dining": Decimal("220.00"),
    }


def test_window_is_half_open(make_transaction):
    txns = [
        make_transaction(amount=Decimal("10.00"), date=date(2024, 3, 1)),
        make_transaction(amount=Decimal("20.00"), date=date(2024, 3, 31)),
        make_transaction(amount=Decimal("40.00"), date=date(2024, 4, 1)),
        make_transaction(amount=Decimal("80.00"), date=date(2024, 2, 29)),
    ]

    totals = compute_totals(txns, _budget(), date(2024, 3, 1), date(2024, 4, 1))

    assert totals.total_spent == Decimal("30.00")
    assert totals.total_saved == Decimal("470.00")


def test_only_budgeted_expenses_count(make_transaction):
    txns = [
        make_transaction(amount=Decimal("50.00")),
        make_transaction(amount=Decimal("70.00"), category="Travel"),
        make_transaction(amount=Decimal("90.00"), type=TransactionType.income),
        make_transaction(amount=Decimal("30.00"), user_id=2),
    ]

    totals = compute_totals(txns, _budget(), date(2024, 3, 1), date(2024, 4, 1))

    assert totals.total_spent == Decimal("50.00")
    assert totals.category_spending == {"Groceries": Decimal("50.00")}


def test_period_totals_across_budgets(make_transaction):
    food = _budget()
    travel = Budget(
        id=2,
        user_id=1,
        description="Travel",
        amount=Decimal("300.00"),
        period=BudgetPeriodicity.monthly,
        categories=["Travel"],
    )
    txns = [
        make_transaction(amount=Decimal("120.00")),
        make_transaction(amount=Decimal("50.00"), category="Travel"),
    ]

    totals = compute_period_totals(
        txns, [food, travel], date(2024, 3, 1), date(2024, 4, 1), owner=1
    )

    assert totals.total_spent == Decimal("170.00")
    assert totals.total_saved == Decimal("630.00")
    assert totals.category_spending["Travel"] == Decimal("50.00")


def test_invalid_ranges_are_rejected():
    with pytest.raises(InvalidRange):
        compute_totals([], _budget(), date(2024, 4, 1), date(2024, 3, 1))
    with pytest.raises(InvalidRange):
        Period.closing(date(2024, 4, 1), date(2024, 3, 31))


def test_closing_window_includes_last_day():
    period = Period.closing(date(2024, 3, 1), date(2024, 3, 31))
    assert period.end == date(2024, 4, 1)
    assert period.contains(date(2024, 3, 31))
    assert not period.contains(date(2024, 4, 1))
