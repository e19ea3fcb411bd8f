from __future__ import annotations

from forecast_graph.calculation.application.forecast_service import ForecastService
from forecast_graph.calculation.data.variable_data_service import (
    VariableDataService,
)
from forecast_graph.calculation.domain.engine import CalculationEngine
from forecast_graph.calculation.domain.graph_validator import GraphValidator
from forecast_graph.calculation.domain.ports import VariableDataPort
from forecast_graph.calculation.domain.tree_builder import TreeBuilder


def build_forecast_service(
    variable_data_service: VariableDataPort | None = None,
) -> ForecastService:
    validator = GraphValidator()
    return ForecastService(
        validator=validator,
        tree_builder=TreeBuilder(validator),
        engine=CalculationEngine(variable_data_service or VariableDataService()),
    )


forecast_service = build_forecast_service()
