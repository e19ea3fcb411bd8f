from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime

from forecast_graph.calculation.domain.engine import CalculationEngine
from forecast_graph.calculation.domain.errors import (
    ForecastGraphError,
    GraphValidationError,
    NodeEvaluationError,
)
from forecast_graph.calculation.domain.graph_validator import GraphValidator
from forecast_graph.calculation.domain.models import (
    ForecastCalculationResult,
    GraphEdge,
    GraphNode,
    GraphValidationResult,
    Variable,
)
from forecast_graph.calculation.domain.tree_builder import TreeBuilder
from forecast_graph.calculation.interface.parsers import parse_forecast_request
from forecast_graph.calculation.interface.serializers import (
    serialize_forecast_result,
)
from forecast_graph.shared.kernel.tools.logger import (
    get_logger,
    log_context,
    log_event,
)
from forecast_graph.shared.kernel.types import JSONObject

logger = get_logger(__name__)


class ForecastService:
    """validate -> convert -> evaluate, stamping the caller's forecast id."""

    def __init__(
        self,
        *,
        validator: GraphValidator,
        tree_builder: TreeBuilder,
        engine: CalculationEngine,
    ):
        self.validator = validator
        self.tree_builder = tree_builder
        self.engine = engine

    def validate_graph(
        self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> GraphValidationResult:
        return self.validator.validate_graph(nodes, edges)

    def calculate_forecast(
        self,
        forecast_id: str,
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        forecast_start_date: date | datetime,
        forecast_end_date: date | datetime,
        variables: Sequence[Variable],
    ) -> ForecastCalculationResult:
        with log_context(forecast_id=forecast_id):
            started = time.perf_counter()
            try:
                validation = self.validator.validate_graph(nodes, edges)
                if not validation.is_valid:
                    raise GraphValidationError(validation)
                trees = self.tree_builder.convert_to_trees(nodes, edges, validation)
                result = self.engine.calculate_forecast(
                    trees, forecast_start_date, forecast_end_date, variables
                )
            except ForecastGraphError as exc:
                fields: dict[str, object] = {
                    "exception": str(exc),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                }
                if isinstance(exc, NodeEvaluationError):
                    fields["node_id"] = exc.node_id
                    fields["cause_code"] = exc.cause_code
                log_event(
                    logger,
                    event="forecast_request_failed",
                    message="forecast calculation failed",
                    level=logging.ERROR,
                    error_code=exc.error_code,
                    fields=fields,
                )
                raise

            log_event(
                logger,
                event="forecast_request_completed",
                message="forecast calculation request completed",
                fields={
                    "metric_count": len(result.metrics),
                    "warning_count": len(validation.warnings),
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return replace(result, forecast_id=forecast_id)

    def calculate_forecast_payload(self, payload: object) -> JSONObject:
        """Parse a raw request mapping, calculate, and return the JSON result."""
        request = parse_forecast_request(payload)
        result = self.calculate_forecast(
            request.forecast_id,
            request.nodes,
            request.edges,
            request.forecast_start_date,
            request.forecast_end_date,
            request.variables,
        )
        return serialize_forecast_result(result)
