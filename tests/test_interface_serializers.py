from __future__ import annotations

import math
from datetime import date, datetime, timezone

import pandas as pd

from forecast_graph.calculation.domain.models import (
    ForecastCalculationResult,
    GraphValidationResult,
    MetricCalculationResult,
    MonthlyForecastValue,
    ValidationIssue,
)
from forecast_graph.calculation.domain.value_objects import ValidationIssueCode
from forecast_graph.calculation.interface.serializers import (
    build_metric_frame,
    serialize_forecast_result,
    serialize_validation_result,
)


def _result() -> ForecastCalculationResult:
    return ForecastCalculationResult(
        forecast_id="fc-1",
        calculated_at=datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc),
        metrics=(
            MetricCalculationResult(
                metric_node_id="revenue",
                values=(
                    MonthlyForecastValue(date(2024, 1, 1), 15.0, 14.0, None),
                    MonthlyForecastValue(date(2024, 2, 1), math.inf, None, 12.5),
                ),
            ),
            MetricCalculationResult(
                metric_node_id="cost",
                values=(MonthlyForecastValue(date(2024, 1, 1), 3.0, None, None),),
            ),
        ),
    )


def test_serialize_forecast_result_uses_camel_case_and_iso_dates() -> None:
    payload = serialize_forecast_result(_result())

    assert payload["forecastId"] == "fc-1"
    assert str(payload["calculatedAt"]).startswith("2024-07-01T12:00:00")
    metrics = payload["metrics"]
    assert isinstance(metrics, list)
    assert metrics[0] == {
        "metricNodeId": "revenue",
        "values": [
            {"date": "2024-01-01", "forecast": 15.0, "budget": 14.0, "historical": None},
            {"date": "2024-02-01", "forecast": None, "budget": None, "historical": 12.5},
        ],
    }


def test_serialize_validation_result_lists_messages() -> None:
    result = GraphValidationResult(
        errors=(
            ValidationIssue(
                ValidationIssueCode.MISSING_METRIC_NODE,
                "Graph must contain at least one METRIC node",
            ),
        ),
        warnings=(
            ValidationIssue(
                ValidationIssueCode.ORPHAN_NODE,
                "Node c (CONSTANT) is not connected to any other nodes",
                node_id="c",
            ),
        ),
    )

    assert serialize_validation_result(result) == {
        "isValid": False,
        "errors": ["Graph must contain at least one METRIC node"],
        "warnings": ["Node c (CONSTANT) is not connected to any other nodes"],
    }


def test_build_metric_frame_indexes_by_metric_and_month() -> None:
    frame = build_metric_frame(_result())

    assert list(frame.index.names) == ["metric_node_id", "date"]
    assert list(frame.columns) == ["forecast", "budget", "historical"]
    assert len(frame) == 3
    revenue_feb = frame.loc[("revenue", pd.Timestamp("2024-02-01"))]
    assert revenue_feb["historical"] == 12.5
    assert math.isnan(revenue_feb["budget"])
    assert frame.loc[("cost", pd.Timestamp("2024-01-01")), "forecast"] == 3.0


def test_build_metric_frame_handles_empty_result() -> None:
    empty = ForecastCalculationResult("fc", datetime.now(timezone.utc), ())

    frame = build_metric_frame(empty)

    assert frame.empty
    assert list(frame.columns) == ["forecast", "budget", "historical"]
