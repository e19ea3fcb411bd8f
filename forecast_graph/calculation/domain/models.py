from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TypeAlias

from .value_objects import CalculationType, NodeKind, ValidationIssueCode


@dataclass(frozen=True)
class DataNodeAttributes:
    variable_id: str | None = None
    offset_months: int = 0
    name: str | None = None


@dataclass(frozen=True)
class ConstantNodeAttributes:
    value: float | None = None
    name: str | None = None


@dataclass(frozen=True)
class OperatorNodeAttributes:
    op: str | None = None
    input_order: tuple[str, ...] | None = None


@dataclass(frozen=True)
class MetricNodeAttributes:
    label: str | None = None
    budget_variable_id: str | None = None
    historical_variable_id: str | None = None
    use_calculated: bool = False


@dataclass(frozen=True)
class SeedNodeAttributes:
    source_metric_id: str | None = None


NodeAttributes: TypeAlias = (
    DataNodeAttributes
    | ConstantNodeAttributes
    | OperatorNodeAttributes
    | MetricNodeAttributes
    | SeedNodeAttributes
)

ATTRIBUTES_BY_KIND: dict[NodeKind, type] = {
    NodeKind.DATA: DataNodeAttributes,
    NodeKind.CONSTANT: ConstantNodeAttributes,
    NodeKind.OPERATOR: OperatorNodeAttributes,
    NodeKind.METRIC: MetricNodeAttributes,
    NodeKind.SEED: SeedNodeAttributes,
}


def is_configured(variable_id: str | None) -> bool:
    return variable_id is not None and variable_id.strip() != ""


@dataclass(frozen=True)
class GraphNode:
    id: str
    kind: NodeKind
    attributes: NodeAttributes

    def __post_init__(self) -> None:
        expected = ATTRIBUTES_BY_KIND[self.kind]
        if not isinstance(self.attributes, expected):
            raise TypeError(
                f"node {self.id} of kind {self.kind.value} requires "
                f"{expected.__name__}, got {type(self.attributes).__name__}"
            )


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: date
    value: float | None


@dataclass(frozen=True)
class Variable:
    id: str
    name: str
    type: str = "UNKNOWN"
    time_series: tuple[TimeSeriesPoint, ...] = ()


@dataclass(frozen=True)
class CalculationTreeNode:
    node_id: str
    node_type: NodeKind
    node_data: NodeAttributes
    children: tuple[CalculationTreeNode, ...] = ()
    input_order: tuple[str, ...] | None = None

    def walk(self) -> Iterator[CalculationTreeNode]:
        """Depth-first pre-order traversal including this node."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class CalculationTree:
    root_metric_node_id: str
    tree: CalculationTreeNode


@dataclass(frozen=True)
class MonthlyForecastValue:
    date: date
    forecast: float | None
    budget: float | None
    historical: float | None

    def value_for(self, calc_type: CalculationType) -> float | None:
        if calc_type is CalculationType.FORECAST:
            return self.forecast
        if calc_type is CalculationType.BUDGET:
            return self.budget
        return self.historical


@dataclass(frozen=True)
class MetricCalculationResult:
    metric_node_id: str
    values: tuple[MonthlyForecastValue, ...]


@dataclass(frozen=True)
class ForecastCalculationResult:
    forecast_id: str
    calculated_at: datetime
    metrics: tuple[MetricCalculationResult, ...]

    def metric(self, metric_node_id: str) -> MetricCalculationResult | None:
        for result in self.metrics:
            if result.metric_node_id == metric_node_id:
                return result
        return None


@dataclass(frozen=True)
class ValidationIssue:
    code: ValidationIssueCode
    message: str
    node_id: str | None = None
    edge_id: str | None = None


@dataclass(frozen=True)
class GraphValidationResult:
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    is_valid: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_valid", not self.errors)

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.errors]

    @property
    def warning_messages(self) -> list[str]:
        return [issue.message for issue in self.warnings]

    def has_error(self, code: ValidationIssueCode) -> bool:
        return any(issue.code is code for issue in self.errors)

    def has_warning(self, code: ValidationIssueCode) -> bool:
        return any(issue.code is code for issue in self.warnings)


@dataclass(frozen=True)
class ForecastRequest:
    """A parsed calculation request: the authored graph plus its inputs."""

    forecast_id: str
    nodes: tuple[GraphNode, ...]
    edges: tuple[GraphEdge, ...]
    forecast_start_date: date
    forecast_end_date: date
    variables: tuple[Variable, ...] = ()
