from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from forecast_graph.config.engine_config import SEED_AVAILABLE_DATES_PREVIEW

from .models import GraphValidationResult


class ForecastGraphError(Exception):
    """Base class for every error raised by the calculation core."""

    error_code = "FORECAST_GRAPH_ERROR"


class GraphValidationError(ForecastGraphError, ValueError):
    error_code = "FORECAST_GRAPH_INVALID"

    def __init__(self, result: GraphValidationResult):
        self.result = result
        super().__init__(f"Invalid graph: {', '.join(result.error_messages)}")


class InvalidDateRangeError(ForecastGraphError, ValueError):
    error_code = "FORECAST_DATE_RANGE_INVALID"


class CalculationError(ForecastGraphError, RuntimeError):
    """Fatal structural failure detected while evaluating a tree."""

    error_code = "FORECAST_CALCULATION_FAILED"


class UnknownNodeTypeError(CalculationError):
    error_code = "FORECAST_UNKNOWN_NODE_TYPE"

    def __init__(self, node_type: object, *, node_id: str | None = None):
        self.node_type = node_type
        self.node_id = node_id
        where = f" for node {node_id}" if node_id else ""
        super().__init__(f"Unknown node type{where}: {node_type!r}")


class UnknownOperatorError(CalculationError):
    error_code = "FORECAST_UNKNOWN_OPERATOR"

    def __init__(self, node_id: str, op: object):
        self.node_id = node_id
        self.op = op
        super().__init__(f"Unknown operator for OPERATOR node {node_id}: {op!r}")


class OperatorNoValidChildrenError(CalculationError):
    error_code = "FORECAST_OPERATOR_NO_CHILDREN"

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"OPERATOR node {node_id} has no valid children")


class MetricChildCountError(CalculationError):
    error_code = "FORECAST_METRIC_CHILD_COUNT"

    def __init__(self, node_id: str, child_count: int):
        self.node_id = node_id
        self.child_count = child_count
        super().__init__(
            f"METRIC node {node_id} cannot have more than one child "
            f"(found {child_count})"
        )


class SeedSourceMetricNotFoundError(CalculationError):
    error_code = "FORECAST_SEED_SOURCE_NOT_FOUND"

    def __init__(self, node_id: str, source_metric_id: str | None):
        self.node_id = node_id
        self.source_metric_id = source_metric_id
        super().__init__(
            f"Referenced metric node {source_metric_id or '<unset>'} of SEED node {node_id} "
            "not found in calculation trees"
        )


class SeedHistoricalVariableMissingError(CalculationError):
    error_code = "FORECAST_SEED_HISTORICAL_VARIABLE_MISSING"

    def __init__(self, node_id: str, source_metric_id: str):
        self.node_id = node_id
        self.source_metric_id = source_metric_id
        super().__init__(
            f"Metric node {source_metric_id} referenced by SEED node {node_id} "
            "has no historical variable configured"
        )


def _format_available_dates(available_dates: Sequence[date], limit: int) -> str:
    if not available_dates:
        return "no dates found in variable data"
    shown = ", ".join(item.isoformat() for item in available_dates[:limit])
    hidden = len(available_dates) - limit
    if hidden > 0:
        shown += f" (and {hidden} more)"
    return shown


class SeedHistoricalDataPointMissingError(CalculationError):
    """Month-0 SEED bootstrap found no historical value for the prior month.

    This is a configuration fault: the first forecast month has no other
    source for the carried-forward value.
    """

    error_code = "FORECAST_SEED_HISTORICAL_DATA_MISSING"

    def __init__(
        self,
        *,
        node_id: str,
        expected_date: date,
        variable_id: str,
        variable_name: str,
        available_dates: Sequence[date],
    ):
        self.node_id = node_id
        self.expected_date = expected_date
        self.variable_id = variable_id
        self.variable_name = variable_name
        self.available_dates = tuple(available_dates)
        super().__init__(
            f"Historical data for {expected_date.isoformat()} not found in "
            f"variable '{variable_name}' ({variable_id}). Available dates: "
            f"{_format_available_dates(self.available_dates, SEED_AVAILABLE_DATES_PREVIEW)}"
        )


class CircularMetricDependencyError(CalculationError):
    error_code = "FORECAST_CIRCULAR_METRIC_DEPENDENCY"

    def __init__(self, metric_ids: Sequence[str]):
        self.metric_ids = tuple(metric_ids)
        super().__init__(
            "Circular dependency detected between metrics: "
            + " -> ".join(self.metric_ids)
        )


class NodeEvaluationError(CalculationError):
    """Wraps the first fatal failure with the id of the node that raised it."""

    error_code = "FORECAST_NODE_EVALUATION_FAILED"

    def __init__(self, node_id: str, cause: CalculationError):
        self.node_id = node_id
        self.cause = cause
        super().__init__(f"Node evaluation failed for {node_id}: {cause}")

    @property
    def cause_code(self) -> str:
        return self.cause.error_code
