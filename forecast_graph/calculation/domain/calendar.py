"""Calendar-month arithmetic shared by the engine and the variable lookup.

Every date handled by the calculation core is reduced to the first day of its
month. ``datetime`` values are accepted and truncated to their date part.
"""

from __future__ import annotations

from datetime import date, datetime

from dateutil.relativedelta import relativedelta


def first_of_month(value: date | datetime) -> date:
    return date(value.year, value.month, 1)


def add_months(value: date | datetime, months: int) -> date:
    """Shift by calendar months; day-of-month is clamped, never rolled over."""
    base = value.date() if isinstance(value, datetime) else value
    return base + relativedelta(months=months)


def month_index(value: date | datetime) -> int:
    """Months since year 0, used as the integer part of cache keys."""
    return value.year * 12 + (value.month - 1)


def months_between_inclusive(start: date | datetime, end: date | datetime) -> int:
    return month_index(end) - month_index(start) + 1


def iter_month_starts(start: date | datetime, count: int) -> list[date]:
    anchor = first_of_month(start)
    return [first_of_month(add_months(anchor, offset)) for offset in range(count)]
