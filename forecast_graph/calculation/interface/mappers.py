from __future__ import annotations

from collections.abc import Callable, Mapping

from forecast_graph.calculation.domain.errors import UnknownNodeTypeError
from forecast_graph.calculation.domain.models import (
    ConstantNodeAttributes,
    DataNodeAttributes,
    ForecastCalculationResult,
    GraphEdge,
    GraphNode,
    GraphValidationResult,
    MetricNodeAttributes,
    NodeAttributes,
    OperatorNodeAttributes,
    SeedNodeAttributes,
    TimeSeriesPoint,
    Variable,
)
from forecast_graph.calculation.domain.value_objects import NodeKind

from .contracts import (
    ConstantAttributesModel,
    DataAttributesModel,
    ForecastCalculationResultModel,
    GraphEdgeModel,
    GraphNodeModel,
    GraphValidationResultModel,
    MetricAttributesModel,
    MetricCalculationResultModel,
    MonthlyForecastValueModel,
    OperatorAttributesModel,
    SeedAttributesModel,
    VariableModel,
)


def _to_data(data: Mapping[str, object]) -> DataNodeAttributes:
    model = DataAttributesModel.model_validate(data)
    return DataNodeAttributes(
        variable_id=model.variable_id,
        offset_months=model.offset_months,
        name=model.name,
    )


def _to_constant(data: Mapping[str, object]) -> ConstantNodeAttributes:
    model = ConstantAttributesModel.model_validate(data)
    return ConstantNodeAttributes(value=model.value, name=model.name)


def _to_operator(data: Mapping[str, object]) -> OperatorNodeAttributes:
    model = OperatorAttributesModel.model_validate(data)
    input_order = tuple(model.input_order) if model.input_order is not None else None
    return OperatorNodeAttributes(op=model.op, input_order=input_order)


def _to_metric(data: Mapping[str, object]) -> MetricNodeAttributes:
    model = MetricAttributesModel.model_validate(data)
    return MetricNodeAttributes(
        label=model.label,
        budget_variable_id=model.budget_variable_id,
        historical_variable_id=model.historical_variable_id,
        use_calculated=model.use_calculated,
    )


def _to_seed(data: Mapping[str, object]) -> SeedNodeAttributes:
    model = SeedAttributesModel.model_validate(data)
    return SeedNodeAttributes(source_metric_id=model.source_metric_id)


_ATTRIBUTE_MAPPERS: dict[NodeKind, Callable[[Mapping[str, object]], NodeAttributes]] = {
    NodeKind.DATA: _to_data,
    NodeKind.CONSTANT: _to_constant,
    NodeKind.OPERATOR: _to_operator,
    NodeKind.METRIC: _to_metric,
    NodeKind.SEED: _to_seed,
}


def to_node_kind(raw_type: str, *, node_id: str | None = None) -> NodeKind:
    try:
        return NodeKind(raw_type.strip().upper())
    except ValueError as exc:
        raise UnknownNodeTypeError(raw_type, node_id=node_id) from exc


def to_graph_node(model: GraphNodeModel) -> GraphNode:
    kind = to_node_kind(model.type, node_id=model.id)
    return GraphNode(
        id=model.id,
        kind=kind,
        attributes=_ATTRIBUTE_MAPPERS[kind](model.data),
    )


def to_graph_edge(model: GraphEdgeModel) -> GraphEdge:
    return GraphEdge(id=model.id, source=model.source, target=model.target)


def to_variable(model: VariableModel) -> Variable:
    return Variable(
        id=model.id,
        name=model.name if model.name is not None else model.id,
        type=model.type,
        time_series=tuple(
            TimeSeriesPoint(date=point.date, value=point.value)
            for point in model.time_series
        ),
    )


def from_forecast_result(
    result: ForecastCalculationResult,
) -> ForecastCalculationResultModel:
    return ForecastCalculationResultModel(
        forecast_id=result.forecast_id,
        calculated_at=result.calculated_at,
        metrics=[
            MetricCalculationResultModel(
                metric_node_id=metric.metric_node_id,
                values=[
                    MonthlyForecastValueModel(
                        date=value.date,
                        forecast=value.forecast,
                        budget=value.budget,
                        historical=value.historical,
                    )
                    for value in metric.values
                ],
            )
            for metric in result.metrics
        ],
    )


def from_validation_result(
    result: GraphValidationResult,
) -> GraphValidationResultModel:
    return GraphValidationResultModel(
        is_valid=result.is_valid,
        errors=result.error_messages,
        warnings=result.warning_messages,
    )
