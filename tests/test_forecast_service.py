from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime

import pytest

from forecast_graph.calculation.application.factory import (
    build_forecast_service,
    forecast_service,
)
from forecast_graph.calculation.application.forecast_service import ForecastService
from forecast_graph.calculation.domain.errors import (
    GraphValidationError,
    NodeEvaluationError,
)
from forecast_graph.calculation.domain.models import (
    ConstantNodeAttributes,
    DataNodeAttributes,
    GraphEdge,
    GraphNode,
    MetricNodeAttributes,
    OperatorNodeAttributes,
    TimeSeriesPoint,
    Variable,
)
from forecast_graph.calculation.domain.value_objects import NodeKind


def _growth_graph(op: str = "*") -> tuple[list[GraphNode], list[GraphEdge]]:
    nodes = [
        GraphNode(
            "revenue",
            NodeKind.METRIC,
            MetricNodeAttributes(label="Revenue", budget_variable_id="rev_budget"),
        ),
        GraphNode("grow", NodeKind.OPERATOR, OperatorNodeAttributes(op=op)),
        GraphNode("units", NodeKind.DATA, DataNodeAttributes(variable_id="units")),
        GraphNode("price", NodeKind.CONSTANT, ConstantNodeAttributes(value=2.0)),
    ]
    edges = [
        GraphEdge("e1", "units", "grow"),
        GraphEdge("e2", "price", "grow"),
        GraphEdge("e3", "grow", "revenue"),
    ]
    return nodes, edges


def _variables() -> list[Variable]:
    return [
        Variable(
            id="units",
            name="Units sold",
            time_series=(
                TimeSeriesPoint(date(2024, 1, 1), 10.0),
                TimeSeriesPoint(date(2024, 2, 1), 12.0),
            ),
        ),
        Variable(
            id="rev_budget",
            name="Revenue budget",
            time_series=(
                TimeSeriesPoint(date(2024, 1, 1), 18.0),
                TimeSeriesPoint(date(2024, 2, 1), 25.0),
            ),
        ),
    ]


def test_calculate_forecast_stamps_forecast_id() -> None:
    nodes, edges = _growth_graph()

    result = build_forecast_service().calculate_forecast(
        "fc-42", nodes, edges, date(2024, 1, 1), date(2024, 2, 1), _variables()
    )

    assert result.forecast_id == "fc-42"
    revenue = result.metric("revenue")
    assert revenue is not None
    assert [value.forecast for value in revenue.values] == [20.0, 24.0]
    assert [value.budget for value in revenue.values] == [18.0, 25.0]
    assert [value.historical for value in revenue.values] == [None, None]


def test_calculate_forecast_rejects_invalid_graph_and_logs_error_code(
    caplog: pytest.LogCaptureFixture,
) -> None:
    nodes = [GraphNode("c", NodeKind.CONSTANT, ConstantNodeAttributes(value=1.0))]

    with caplog.at_level(logging.INFO):
        with pytest.raises(
            GraphValidationError,
            match="Invalid graph: Graph must contain at least one METRIC node",
        ):
            build_forecast_service().calculate_forecast(
                "fc-bad", nodes, [], date(2024, 1, 1), date(2024, 1, 1), []
            )

    failures = [
        record
        for record in caplog.records
        if getattr(record, "event", None) == "forecast_request_failed"
    ]
    assert len(failures) == 1
    assert failures[0].levelno == logging.ERROR
    assert getattr(failures[0], "error_code") == "FORECAST_GRAPH_INVALID"


def test_calculate_forecast_validates_the_graph_once(
    caplog: pytest.LogCaptureFixture,
) -> None:
    nodes, edges = _growth_graph()

    with caplog.at_level(logging.INFO):
        build_forecast_service().calculate_forecast(
            "fc-once", nodes, edges, date(2024, 1, 1), date(2024, 2, 1), _variables()
        )

    validated = [
        record
        for record in caplog.records
        if getattr(record, "event", None) == "forecast_graph_validated"
    ]
    assert len(validated) == 1
    assert not [record for record in caplog.records if record.levelno >= logging.ERROR]


def test_calculate_forecast_logs_failing_node(
    caplog: pytest.LogCaptureFixture,
) -> None:
    nodes, edges = _growth_graph(op="%")

    with caplog.at_level(logging.INFO):
        with pytest.raises(NodeEvaluationError):
            build_forecast_service().calculate_forecast(
                "fc-op", nodes, edges, date(2024, 1, 1), date(2024, 2, 1), _variables()
            )

    failure = next(
        record
        for record in caplog.records
        if getattr(record, "event", None) == "forecast_request_failed"
    )
    fields = getattr(failure, "fields")
    assert fields["node_id"] == "grow"
    assert fields["cause_code"] == "FORECAST_UNKNOWN_OPERATOR"
    assert getattr(failure, "error_code") == "FORECAST_NODE_EVALUATION_FAILED"


def test_validate_graph_returns_warnings_without_raising() -> None:
    nodes, edges = _growth_graph()
    nodes.append(GraphNode("spare", NodeKind.CONSTANT, ConstantNodeAttributes(1.0)))

    result = forecast_service.validate_graph(nodes, edges)

    assert result.is_valid is True
    assert (
        "Node spare (CONSTANT) is not connected to any other nodes"
        in result.warning_messages
    )


def test_calculate_forecast_payload_returns_json_result() -> None:
    payload = {
        "forecastId": "fc-7",
        "forecastStartDate": "2024-01-10",
        "forecastEndDate": "2024-02-28",
        "nodes": [
            {"id": "revenue", "type": "METRIC", "data": {"label": "Revenue"}},
            {"id": "grow", "type": "OPERATOR", "data": {"op": "*"}},
            {"id": "units", "type": "DATA", "data": {"variableId": "units"}},
            {"id": "price", "type": "CONSTANT", "data": {"value": 2}},
        ],
        "edges": [
            {"id": "e1", "source": "units", "target": "grow"},
            {"id": "e2", "source": "price", "target": "grow"},
            {"id": "e3", "source": "grow", "target": "revenue"},
        ],
        "variables": [
            {
                "id": "units",
                "name": "Units sold",
                "timeSeries": [
                    {"date": "2024-01-01T00:00:00.000Z", "value": 10},
                    {"date": "2024-02-01T00:00:00.000Z", "value": 12},
                ],
            }
        ],
    }

    result = build_forecast_service().calculate_forecast_payload(payload)

    assert result["forecastId"] == "fc-7"
    assert result["metrics"] == [
        {
            "metricNodeId": "revenue",
            "values": [
                {"date": "2024-01-01", "forecast": 20.0, "budget": None, "historical": None},
                {"date": "2024-02-01", "forecast": 24.0, "budget": None, "historical": None},
            ],
        }
    ]


class _FlatVariableData:
    def find_variable(
        self, variable_id: str, variables: Sequence[Variable]
    ) -> Variable | None:
        return None

    def get_variable_value_for_month(
        self,
        variable_id: str,
        target_date: date | datetime,
        variables: Sequence[Variable],
    ) -> float | None:
        return 7.0

    def get_variable_value_with_offset(
        self,
        variable_id: str,
        target_date: date | datetime,
        offset_months: int,
        variables: Sequence[Variable],
    ) -> float | None:
        return 7.0


def test_build_forecast_service_accepts_custom_variable_source() -> None:
    nodes, edges = _growth_graph()

    service = build_forecast_service(_FlatVariableData())
    result = service.calculate_forecast(
        "fc-flat", nodes, edges, date(2024, 1, 1), date(2024, 1, 1), []
    )

    assert isinstance(service, ForecastService)
    revenue = result.metric("revenue")
    assert revenue is not None
    assert revenue.values[0].forecast == 14.0
    assert revenue.values[0].budget == 7.0
