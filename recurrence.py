"""Date projection for recurring series.

Two date models live here on purpose. ``expected_occurrences`` counts periods
with fixed day lengths (month = 30 days, year = 365 days) and feeds the
missed-execution figures; ``advance_due_date`` steps calendar months and years
and is what actually reschedules a series. They disagree over long windows and
historical reports depend on both.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from errors import UnsupportedFrequency
from models import Frequency

Clock = Callable[[], datetime]

PERIOD_DAYS: dict[Frequency, int] = {
    Frequency.weekly: 7,
    Frequency.biweekly: 14,
    Frequency.monthly: 30,
    Frequency.yearly: 365,
}

MONTHLY_FACTORS: dict[Frequency, Decimal] = {
    Frequency.weekly: Decimal("4.33"),
    Frequency.biweekly: Decimal("2.17"),
}

CENT = Decimal("0.01")


def local_now() -> datetime:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone))


def local_today() -> date:
    return local_now().date()


def to_local_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        return moment.date()
    settings = get_settings()
    return moment.astimezone(ZoneInfo(settings.timezone)).date()


def parse_frequency(frequency: Union[Frequency, str]) -> Frequency:
    if isinstance(frequency, Frequency):
        return frequency
    try:
        return Frequency(frequency)
    except ValueError as exc:
        raise UnsupportedFrequency(frequency) from exc


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(base: date, months: int, *, desired_day: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(desired_day, days_in_month(year, month))
    return date(year, month, day)


def expected_occurrences(
    frequency: Union[Frequency, str], start_date: date, end_date: date
) -> int:
    freq = parse_frequency(frequency)
    if freq == Frequency.once:
        return 1 if end_date > start_date else 0
    days = (end_date - start_date).days
    return max(0, days // PERIOD_DAYS[freq])


def advance_due_date(
    frequency: Union[Frequency, str],
    current_due: date,
    day_of_month: Optional[int] = None,
    month_of_year: Optional[int] = None,
) -> date:
    """Step ``current_due`` forward by one period.

    Monthly and yearly steps land on ``day_of_month`` when given, clamped to
    the month end, so a series anchored on the 31st goes 31 Jan, 29 Feb,
    31 Mar. Yearly steps also move to ``month_of_year`` when given.
    """
    freq = parse_frequency(frequency)
    if freq == Frequency.weekly:
        return current_due + timedelta(days=7)
    if freq == Frequency.biweekly:
        return current_due + timedelta(days=14)
    desired_day = day_of_month or current_due.day
    if freq == Frequency.monthly:
        return _add_months(current_due, 1, desired_day=desired_day)
    if freq == Frequency.yearly:
        year = current_due.year + 1
        month = month_of_year or current_due.month
        return date(year, month, min(desired_day, days_in_month(year, month)))
    # once: nothing further to schedule
    return current_due


def to_monthly_equivalent(amount: Decimal, frequency: object) -> Decimal:
    amount = Decimal(amount)
    try:
        freq = Frequency(frequency)
    except ValueError:
        return amount
    if freq in MONTHLY_FACTORS:
        return amount * MONTHLY_FACTORS[freq]
    if freq == Frequency.yearly:
        return amount / 12
    return amount


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
