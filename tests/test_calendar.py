from __future__ import annotations

from datetime import date, datetime

from forecast_graph.calculation.domain.calendar import (
    add_months,
    first_of_month,
    iter_month_starts,
    month_index,
    months_between_inclusive,
)


def test_first_of_month_truncates_dates_and_datetimes() -> None:
    assert first_of_month(date(2024, 3, 31)) == date(2024, 3, 1)
    assert first_of_month(datetime(2024, 3, 31, 23, 59)) == date(2024, 3, 1)


def test_add_months_clamps_day_of_month() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 1, 1), -1) == date(2023, 12, 1)
    assert add_months(datetime(2024, 11, 15, 8, 30), 3) == date(2025, 2, 15)


def test_months_between_inclusive_counts_both_endpoints() -> None:
    assert months_between_inclusive(date(2024, 1, 15), date(2024, 3, 2)) == 3
    assert months_between_inclusive(date(2024, 5, 1), date(2024, 5, 31)) == 1
    assert months_between_inclusive(date(2023, 11, 1), date(2024, 2, 1)) == 4
    assert months_between_inclusive(date(2024, 2, 1), date(2024, 1, 1)) == 0


def test_iter_month_starts_crosses_year_boundary() -> None:
    assert iter_month_starts(date(2024, 11, 30), 3) == [
        date(2024, 11, 1),
        date(2024, 12, 1),
        date(2025, 1, 1),
    ]


def test_month_index_is_monotonic_across_years() -> None:
    assert month_index(date(2024, 1, 20)) == month_index(date(2024, 1, 1))
    assert month_index(date(2024, 1, 1)) - month_index(date(2023, 12, 1)) == 1
