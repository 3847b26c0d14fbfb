"""
Calendar helpers shared by the recurrence, income and forecast engines.

Month arithmetic goes through dateutil's relativedelta, which clamps to
the end of shorter months (Jan 31 + 1 month = Feb 28/29) instead of
overflowing into the following month.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Union

from dateutil.relativedelta import relativedelta

from finance_engine.models.ledger import RecurrencePeriod


DateLike = Union[date, datetime]


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(day: int, year: int, month: int) -> int:
    """Clamp a configured pay day to the last day of the given month."""
    return min(day, days_in_month(year, month))


def month_start(moment: DateLike) -> datetime:
    return datetime(moment.year, moment.month, 1)


def month_end(moment: DateLike) -> datetime:
    """Last instant of the month, so the whole last day is included."""
    last = days_in_month(moment.year, moment.month)
    return datetime(moment.year, moment.month, last, 23, 59, 59, 999999)


def add_months(moment: DateLike, months: int) -> DateLike:
    return moment + relativedelta(months=months)


def iter_months(start: DateLike, count: int) -> Iterator[tuple[int, int]]:
    """
    Yield (year, month) for `count` consecutive months beginning with
    the month of `start`.
    """
    first = date(start.year, start.month, 1)
    for offset in range(count):
        current = first + relativedelta(months=offset)
        yield current.year, current.month


def days_remaining_in_month(today: DateLike) -> int:
    """Days left in the month, today included."""
    return days_in_month(today.year, today.month) - today.day + 1


def advance_occurrence(
    moment: datetime,
    period: RecurrencePeriod,
) -> Optional[datetime]:
    """
    Next occurrence of a recurring template after `moment`.

    Returns None for RecurrencePeriod.NONE, which stops the template.
    """
    if period == RecurrencePeriod.DAILY:
        return moment + timedelta(days=1)
    if period == RecurrencePeriod.WEEKLY:
        return moment + timedelta(weeks=1)
    if period == RecurrencePeriod.MONTHLY:
        return moment + relativedelta(months=1)
    return None
