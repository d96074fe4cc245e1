from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from config import get_settings
from models import RecurringSeries, TransactionType
from recurrence import (
    expected_occurrences,
    round_money,
    to_local_date,
    to_monthly_equivalent,
)
from schemas import DashboardView, MissedExecution, MonthlyImpact, SeriesOut

Moment = Union[datetime, date]


@dataclass
class SeriesBuckets:
    due_today: list[RecurringSeries] = field(default_factory=list)
    upcoming: list[RecurringSeries] = field(default_factory=list)
    overdue: list[RecurringSeries] = field(default_factory=list)


@dataclass(frozen=True)
class CashFlowImpact:
    income: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


def as_today(now: Moment) -> date:
    if isinstance(now, datetime):
        return to_local_date(now)
    return now


def is_paused(series: RecurringSeries, today: date) -> bool:
    if not series.is_paused:
        return False
    # A resume date on or before today means the pause has lapsed.
    return series.pause_until is None or series.pause_until > today


def is_schedulable(series: RecurringSeries, today: date) -> bool:
    if not series.is_active or is_paused(series, today):
        return False
    if series.end_date is not None and series.due_date > series.end_date:
        return False
    return True


def days_until_due(series: RecurringSeries, today: date) -> int:
    return (series.due_date - today).days


def classify(
    series_list: Iterable[RecurringSeries],
    now: Moment,
    lookahead_days: Optional[int] = None,
    max_days_overdue: Optional[int] = None,
) -> SeriesBuckets:
    today = as_today(now)
    if lookahead_days is None:
        lookahead_days = get_settings().lookahead_days
    buckets = SeriesBuckets()
    for series in series_list:
        if not is_schedulable(series, today):
            continue
        delta = days_until_due(series, today)
        if delta == 0:
            buckets.due_today.append(series)
        elif 0 < delta <= lookahead_days:
            buckets.upcoming.append(series)
        elif delta < 0:
            if max_days_overdue is None or -delta <= max_days_overdue:
                buckets.overdue.append(series)
    return buckets


def due_candidates(
    series_list: Iterable[RecurringSeries],
    now: Moment,
    max_days_overdue: Optional[int] = None,
) -> list[RecurringSeries]:
    """Series the execution engine should process, oldest due date first."""
    if max_days_overdue is None:
        max_days_overdue = get_settings().max_days_overdue
    buckets = classify(
        series_list, now, lookahead_days=0, max_days_overdue=max_days_overdue
    )
    candidates = buckets.overdue + buckets.due_today
    return sorted(candidates, key=lambda s: s.due_date)


def missed_count(series: RecurringSeries, now: Moment) -> int:
    """Expected occurrences up to ``end_date`` (or today) minus executions.

    A future ``end_date`` is taken as is, so occurrences that have not come
    due yet already count as missed: a monthly series starting today that
    ends a year out reports 12 on day one.
    """
    end_of_observation = series.end_date or as_today(now)
    expected = expected_occurrences(
        series.frequency, series.start_date, end_of_observation
    )
    return max(0, expected - series.total_executions)


def missed_executions(
    series_list: Iterable[RecurringSeries], now: Moment
) -> list[tuple[RecurringSeries, int]]:
    missed = []
    for series in series_list:
        if not series.is_active:
            continue
        count = missed_count(series, now)
        if count > 0:
            missed.append((series, count))
    # sorted() is stable, so equal counts keep input order
    return sorted(missed, key=lambda item: item[1], reverse=True)


def monthly_impact(
    series_list: Iterable[RecurringSeries], today: Optional[date] = None
) -> CashFlowImpact:
    income = Decimal("0")
    expenses = Decimal("0")
    for series in series_list:
        if not series.is_active:
            continue
        if today is not None and is_paused(series, today):
            continue
        monthly = to_monthly_equivalent(series.amount, series.frequency)
        if series.type == TransactionType.income:
            income += monthly
        elif series.type == TransactionType.expense:
            expenses += monthly
    return CashFlowImpact(income=income, expenses=expenses)


def missed_view(
    series_list: Iterable[RecurringSeries], now: Moment
) -> list[MissedExecution]:
    return [
        MissedExecution(series=SeriesOut.model_validate(series), missed_count=count)
        for series, count in missed_executions(series_list, now)
    ]


def dashboard(
    series_list: Iterable[RecurringSeries],
    now: Moment,
    lookahead_days: Optional[int] = None,
) -> DashboardView:
    today = as_today(now)
    series_list = list(series_list)
    buckets = classify(series_list, today, lookahead_days=lookahead_days)
    impact = monthly_impact(series_list, today)

    def dump(items: Iterable[RecurringSeries]) -> list[SeriesOut]:
        return [SeriesOut.model_validate(s) for s in items]

    return DashboardView(
        active_series=dump(s for s in series_list if s.is_active),
        due_today=dump(buckets.due_today),
        upcoming_series=dump(sorted(buckets.upcoming, key=lambda s: s.due_date)),
        overdue_series=dump(sorted(buckets.overdue, key=lambda s: s.due_date)),
        monthly_impact=MonthlyImpact(
            income=round_money(impact.income),
            expenses=round_money(impact.expenses),
            net=round_money(impact.net),
        ),
    )
