from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from forecast_graph.calculation.domain.models import (
    ForecastRequest,
    GraphEdge,
    GraphNode,
    Variable,
)

from .contracts import (
    ForecastRequestModel,
    GraphEdgeModel,
    GraphNodeModel,
    VariableModel,
    coerce_date,
)
from .mappers import to_graph_edge, to_graph_node, to_variable

TModel = TypeVar("TModel", bound=BaseModel)


def _validate(model_type: type[TModel], value: object, context: str) -> TModel:
    try:
        return model_type.model_validate(value)
    except ValidationError as exc:
        raise TypeError(f"{context} validation failed: {exc}") from exc


def _to_node(model: GraphNodeModel, context: str) -> GraphNode:
    try:
        return to_graph_node(model)
    except ValidationError as exc:
        raise TypeError(f"{context} validation failed: {exc}") from exc


def _as_list(value: object, context: str) -> list[object]:
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return list(value)
    raise TypeError(f"{context} must be a list, got {type(value)!r}")


def parse_graph_nodes(value: object) -> list[GraphNode]:
    nodes: list[GraphNode] = []
    for index, raw in enumerate(_as_list(value, "nodes")):
        context = f"nodes[{index}]"
        model = _validate(GraphNodeModel, raw, context)
        nodes.append(_to_node(model, context))
    return nodes


def parse_graph_edges(value: object) -> list[GraphEdge]:
    return [
        to_graph_edge(_validate(GraphEdgeModel, raw, f"edges[{index}]"))
        for index, raw in enumerate(_as_list(value, "edges"))
    ]


def parse_variables(value: object) -> list[Variable]:
    return [
        to_variable(_validate(VariableModel, raw, f"variables[{index}]"))
        for index, raw in enumerate(_as_list(value, "variables"))
    ]


def parse_forecast_date(value: object, context: str = "forecast date") -> date:
    try:
        return coerce_date(value, context)
    except ValueError as exc:
        raise TypeError(f"{context} is not a valid date: {value!r}") from exc


def parse_forecast_request(value: object) -> ForecastRequest:
    """Parse a full calculation request as sent by the graph editor backend."""
    if not isinstance(value, Mapping):
        raise TypeError(f"forecast request must be a mapping, got {type(value)!r}")
    model = _validate(ForecastRequestModel, value, "forecast request")
    nodes: list[GraphNode] = []
    for index, node_model in enumerate(model.nodes):
        nodes.append(_to_node(node_model, f"nodes[{index}]"))
    return ForecastRequest(
        forecast_id=model.forecast_id,
        nodes=tuple(nodes),
        edges=tuple(to_graph_edge(edge) for edge in model.edges),
        forecast_start_date=model.forecast_start_date,
        forecast_end_date=model.forecast_end_date,
        variables=tuple(to_variable(variable) for variable in model.variables),
    )
