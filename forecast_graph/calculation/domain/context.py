from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from typing import NamedTuple

from .models import (
    CalculationTree,
    CalculationTreeNode,
    MonthlyForecastValue,
    Variable,
)
from .value_objects import CalculationType, NodeKind


class CacheKey(NamedTuple):
    node_id: str
    month_index: int
    calc_type: CalculationType


def index_metric_nodes(
    trees: Sequence[CalculationTree],
) -> dict[str, CalculationTreeNode]:
    """Every METRIC node reachable from the trees, roots and nested, by id."""
    index: dict[str, CalculationTreeNode] = {}
    for tree in trees:
        for node in tree.tree.walk():
            if node.node_type is NodeKind.METRIC:
                index.setdefault(node.node_id, node)
    return index


@dataclass
class CalculationContext:
    """
    State owned by a single calculate_forecast call.

    ``at_month`` returns a view sharing both caches, so values memoized while
    evaluating one month or tree stay visible to the rest of the request.
    """

    variables: Sequence[Variable]
    forecast_start_date: date
    forecast_end_date: date
    metric_nodes: Mapping[str, CalculationTreeNode]
    calculation_cache: dict[CacheKey, float | None] = field(default_factory=dict)
    monthly_cache: dict[str, dict[int, MonthlyForecastValue]] = field(
        default_factory=dict
    )
    current_month: int = 0

    @classmethod
    def for_request(
        cls,
        trees: Sequence[CalculationTree],
        forecast_start_date: date,
        forecast_end_date: date,
        variables: Sequence[Variable],
    ) -> CalculationContext:
        return cls(
            variables=variables,
            forecast_start_date=forecast_start_date,
            forecast_end_date=forecast_end_date,
            metric_nodes=index_metric_nodes(trees),
        )

    def at_month(self, month_offset: int) -> CalculationContext:
        return replace(self, current_month=month_offset)

    def record_month(
        self, metric_node_id: str, month_offset: int, value: MonthlyForecastValue
    ) -> None:
        self.monthly_cache.setdefault(metric_node_id, {})[month_offset] = value

    def cached_month(
        self, metric_node_id: str, month_offset: int
    ) -> MonthlyForecastValue | None:
        return self.monthly_cache.get(metric_node_id, {}).get(month_offset)
