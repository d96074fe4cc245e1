from datetime import date, timedelta
from decimal import Decimal

import pytest

from errors import UnsupportedFrequency
from models import Frequency
from recurrence import (
    advance_due_date,
    expected_occurrences,
    round_money,
    to_monthly_equivalent,
)


def test_advance_weekly_and_biweekly():
    assert advance_due_date(Frequency.weekly, date(2024, 3, 8)) == date(2024, 3, 15)
    assert advance_due_date("biweekly", date(2024, 3, 8)) == date(2024, 3, 22)


def test_advance_monthly_clamps_to_month_end():
    assert advance_due_date(Frequency.monthly, date(2024, 1, 31)) == date(2024, 2, 29)
    assert advance_due_date(Frequency.monthly, date(2023, 1, 31)) == date(2023, 2, 28)
    assert advance_due_date(Frequency.monthly, date(2024, 12, 15)) == date(2025, 1, 15)


def test_advance_yearly_from_leap_day():
    assert advance_due_date(Frequency.yearly, date(2024, 2, 29)) == date(2025, 2, 28)


def test_advance_monthly_returns_to_anchor_day():
    due = date(2024, 1, 31)
    steps = []
    for _ in range(3):
        due = advance_due_date(Frequency.monthly, due, day_of_month=31)
        steps.append(due)
    assert steps == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]

    # without an anchor the clamped day sticks
    assert advance_due_date(Frequency.monthly, date(2024, 2, 29)) == date(2024, 3, 29)


def test_advance_yearly_uses_anchor_month_and_day():
    assert advance_due_date(
        Frequency.yearly, date(2024, 2, 29), day_of_month=29, month_of_year=2
    ) == date(2025, 2, 28)
    assert advance_due_date(
        Frequency.yearly, date(2027, 2, 28), day_of_month=29, month_of_year=2
    ) == date(2028, 2, 29)
    assert advance_due_date(
        Frequency.yearly, date(2024, 3, 15), day_of_month=1, month_of_year=4
    ) == date(2025, 4, 1)


def test_anchor_does_not_affect_weekly_steps():
    assert advance_due_date(
        Frequency.weekly, date(2024, 3, 8), day_of_month=31
    ) == date(2024, 3, 15)


def test_advance_once_keeps_due_date():
    assert advance_due_date(Frequency.once, date(2024, 5, 1)) == date(2024, 5, 1)


def test_advance_never_goes_backwards():
    start = date(2023, 12, 25)
    for offset in range(0, 800, 17):
        due = start + timedelta(days=offset)
        for freq in Frequency:
            nxt = advance_due_date(freq, due)
            assert nxt >= due
            if freq != Frequency.once:
                assert nxt > due


def test_unsupported_frequency_is_rejected():
    with pytest.raises(UnsupportedFrequency) as excinfo:
        advance_due_date("daily", date(2024, 1, 1))
    assert excinfo.value.frequency == "daily"
    assert isinstance(excinfo.value, ValueError)

    with pytest.raises(UnsupportedFrequency):
        expected_occurrences("fortnightly", date(2024, 1, 1), date(2024, 2, 1))


def test_expected_occurrences_empty_window_is_zero():
    day = date(2024, 6, 1)
    for freq in Frequency:
        assert expected_occurrences(freq, day, day) == 0
        assert expected_occurrences(freq, day, day - timedelta(days=40)) == 0


def test_expected_occurrences_uses_fixed_period_lengths():
    start = date(2024, 1, 1)
    assert expected_occurrences(Frequency.weekly, start, date(2024, 1, 15)) == 2
    assert expected_occurrences(Frequency.biweekly, start, date(2024, 1, 14)) == 0
    assert expected_occurrences(Frequency.biweekly, start, date(2024, 1, 15)) == 1
    assert expected_occurrences(Frequency.monthly, start, date(2024, 4, 1)) == 3
    # fixed 365-day years, leap day or not
    assert expected_occurrences(Frequency.yearly, start, date(2024, 12, 30)) == 0
    assert expected_occurrences(Frequency.yearly, start, date(2024, 12, 31)) == 1
    assert expected_occurrences(Frequency.once, start, date(2024, 1, 2)) == 1


def test_monthly_equivalent_factors():
    assert to_monthly_equivalent(Decimal("250.00"), Frequency.monthly) == Decimal(
        "250.00"
    )
    assert to_monthly_equivalent(Decimal("100"), Frequency.weekly) == Decimal("433.00")
    assert to_monthly_equivalent(Decimal("100"), "biweekly") == Decimal("217.00")
    assert to_monthly_equivalent(Decimal("1200"), Frequency.yearly) == Decimal("100")


def test_monthly_equivalent_passes_unknown_frequencies_through():
    assert to_monthly_equivalent(Decimal("80"), "daily") == Decimal("80")
    assert to_monthly_equivalent(Decimal("80"), Frequency.once) == Decimal("80")


def test_round_money_half_up():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("72.3261")) == Decimal("72.33")
