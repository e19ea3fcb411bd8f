from __future__ import annotations

import pandas as pd

from forecast_graph.calculation.domain.models import (
    ForecastCalculationResult,
    GraphValidationResult,
)
from forecast_graph.shared.kernel.types import JSONObject

from .mappers import from_forecast_result, from_validation_result

METRIC_FRAME_COLUMNS = ("forecast", "budget", "historical")


def serialize_forecast_result(result: ForecastCalculationResult) -> JSONObject:
    return from_forecast_result(result).model_dump(mode="json", by_alias=True)


def serialize_validation_result(result: GraphValidationResult) -> JSONObject:
    return from_validation_result(result).model_dump(mode="json", by_alias=True)


def build_metric_frame(result: ForecastCalculationResult) -> pd.DataFrame:
    """
    Long table of every metric series, indexed by (metric_node_id, date).
    Missing values are NaN; dates are month-start timestamps.
    """
    rows = [
        {
            "metric_node_id": metric.metric_node_id,
            "date": pd.Timestamp(value.date),
            "forecast": value.forecast,
            "budget": value.budget,
            "historical": value.historical,
        }
        for metric in result.metrics
        for value in metric.values
    ]
    frame = pd.DataFrame(
        rows, columns=["metric_node_id", "date", *METRIC_FRAME_COLUMNS]
    )
    frame[list(METRIC_FRAME_COLUMNS)] = frame[list(METRIC_FRAME_COLUMNS)].astype(
        "float64"
    )
    return frame.set_index(["metric_node_id", "date"])
