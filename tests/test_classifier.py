from datetime import date, datetime
from decimal import Decimal

from classifier import (
    classify,
    dashboard,
    due_candidates,
    missed_count,
    missed_executions,
    monthly_impact,
)
from models import Frequency, TransactionType


TODAY = date(2024, 3, 10)


def test_classify_buckets(make_series):
    due = make_series(name="due", due_date=TODAY)
    soon = make_series(name="soon", due_date=date(2024, 3, 13))
    late = make_series(name="late", due_date=date(2024, 3, 8))
    far = make_series(name="far", due_date=date(2024, 3, 25))

    buckets = classify([due, soon, late, far], TODAY, lookahead_days=7)

    assert buckets.due_today == [due]
    assert buckets.upcoming == [soon]
    assert buckets.overdue == [late]


def test_classify_accepts_datetime(make_series):
    due = make_series(due_date=TODAY)
    buckets = classify([due], datetime(2024, 3, 10, 23, 30), lookahead_days=7)
    assert buckets.due_today == [due]


def test_paused_inactive_and_ended_series_are_never_due(make_series):
    paused = make_series(due_date=TODAY, is_paused=True)
    paused_until = make_series(
        due_date=TODAY, is_paused=True, pause_until=date(2024, 4, 1)
    )
    inactive = make_series(due_date=TODAY, is_active=False)
    ended = make_series(due_date=TODAY, end_date=date(2024, 3, 1))

    buckets = classify([paused, paused_until, inactive, ended], TODAY, 7)

    assert buckets.due_today == []
    assert buckets.upcoming == []
    assert buckets.overdue == []


def test_lapsed_pause_counts_as_active(make_series):
    lapsed = make_series(due_date=TODAY, is_paused=True, pause_until=TODAY)
    assert classify([lapsed], TODAY, 7).due_today == [lapsed]


def test_due_candidates_respect_overdue_window(make_series):
    recent = make_series(name="recent", due_date=date(2024, 3, 5))
    stale = make_series(name="stale", due_date=date(2024, 2, 20))
    today = make_series(name="today", due_date=TODAY)

    assert due_candidates([today, recent, stale], TODAY, max_days_overdue=7) == [
        recent,
        today,
    ]
    assert due_candidates([today, recent, stale], TODAY, max_days_overdue=30) == [
        stale,
        recent,
        today,
    ]


def test_missed_count_monthly_scenario(make_series):
    series = make_series(
        frequency=Frequency.monthly,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 4, 1),
        due_date=date(2024, 2, 1),
        total_executions=1,
    )
    assert missed_count(series, date(2024, 6, 1)) == 2


def test_missed_count_without_end_date_uses_today(make_series):
    series = make_series(
        frequency=Frequency.weekly,
        start_date=date(2024, 2, 1),
        total_executions=1,
    )
    # 38 days -> 5 weekly periods
    assert missed_count(series, TODAY) == 4


def test_missed_executions_sorted_and_filtered(make_series):
    one = make_series(name="one", start_date=date(2024, 2, 25), total_executions=1)
    three = make_series(name="three", start_date=date(2024, 2, 1), total_executions=2)
    caught_up = make_series(
        name="caught_up", start_date=date(2024, 3, 1), total_executions=1
    )
    also_one = make_series(
        name="also_one", start_date=date(2024, 2, 24), total_executions=1
    )
    inactive = make_series(
        name="inactive", start_date=date(2023, 1, 1), is_active=False
    )

    result = missed_executions([one, three, caught_up, also_one, inactive], TODAY)

    assert [(s.name, count) for s, count in result] == [
        ("three", 3),
        ("one", 1),
        ("also_one", 1),
    ]


def test_monthly_impact_normalizes_frequencies(make_series):
    salary = make_series(
        type=TransactionType.income,
        amount=Decimal("3000.00"),
        frequency=Frequency.monthly,
    )
    gym = make_series(amount=Decimal("100.00"), frequency=Frequency.weekly)
    insurance = make_series(amount=Decimal("1200.00"), frequency=Frequency.yearly)
    savings = make_series(
        type=TransactionType.transfer,
        to_account_id="savings",
        amount=Decimal("500.00"),
        frequency=Frequency.monthly,
    )
    paused = make_series(
        amount=Decimal("999.00"), frequency=Frequency.monthly, is_paused=True
    )

    impact = monthly_impact([salary, gym, insurance, savings, paused], TODAY)

    assert impact.income == Decimal("3000.00")
    assert impact.expenses == Decimal("533.00")
    assert impact.net == Decimal("2467.00")


def test_dashboard_rounds_money(make_series):
    cleaning = make_series(
        amount=Decimal("33.33"), frequency=Frequency.biweekly, due_date=TODAY
    )
    view = dashboard([cleaning], TODAY, lookahead_days=7)

    assert [s.id for s in view.due_today] == [cleaning.id]
    assert [s.id for s in view.active_series] == [cleaning.id]
    assert view.monthly_impact.expenses == Decimal("72.33")
    assert view.monthly_impact.net == Decimal("-72.33")
