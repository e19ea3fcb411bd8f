from __future__ import annotations

from datetime import date, datetime

from forecast_graph.calculation.data.variable_data_service import VariableDataService
from forecast_graph.calculation.domain.models import TimeSeriesPoint, Variable


def _revenue() -> Variable:
    return Variable(
        id="rev",
        name="Revenue",
        type="ACTUAL",
        time_series=(
            TimeSeriesPoint(date(2024, 1, 15), 100.0),
            TimeSeriesPoint(date(2024, 2, 1), 110.0),
            TimeSeriesPoint(date(2024, 4, 1), None),
        ),
    )


def test_value_for_month_matches_on_calendar_month() -> None:
    service = VariableDataService()
    variables = [_revenue()]

    assert service.get_variable_value_for_month("rev", date(2024, 1, 31), variables) == 100.0
    assert (
        service.get_variable_value_for_month(
            "rev", datetime(2024, 2, 20, 12, 0), variables
        )
        == 110.0
    )


def test_value_for_month_has_no_nearest_date_fallback() -> None:
    service = VariableDataService()
    variables = [_revenue()]

    assert service.get_variable_value_for_month("rev", date(2024, 3, 1), variables) is None
    assert service.get_variable_value_for_month("rev", date(2024, 4, 1), variables) is None
    assert service.get_variable_value_for_month("missing", date(2024, 1, 1), variables) is None


def test_value_with_offset_shifts_by_calendar_months() -> None:
    service = VariableDataService()
    variables = [_revenue()]

    assert (
        service.get_variable_value_with_offset("rev", date(2024, 3, 1), -1, variables)
        == 110.0
    )
    assert (
        service.get_variable_value_with_offset("rev", date(2023, 12, 31), 1, variables)
        == 100.0
    )
    assert (
        service.get_variable_value_with_offset("rev", date(2024, 2, 1), 0, variables)
        == 110.0
    )


def test_find_variable_returns_first_match_or_none() -> None:
    service = VariableDataService()
    revenue = _revenue()

    assert service.find_variable("rev", [revenue]) is revenue
    assert service.find_variable("cost", [revenue]) is None
