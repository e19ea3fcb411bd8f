from __future__ import annotations

import logging
import math
import operator
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone
from typing import cast

import networkx as nx

from forecast_graph.config.engine_config import MAX_FORECAST_MONTHS
from forecast_graph.shared.kernel.tools.logger import (
    get_logger,
    log_context,
    log_event,
)

from .calendar import (
    add_months,
    first_of_month,
    iter_month_starts,
    month_index,
    months_between_inclusive,
)
from .context import CacheKey, CalculationContext
from .errors import (
    CalculationError,
    CircularMetricDependencyError,
    InvalidDateRangeError,
    MetricChildCountError,
    NodeEvaluationError,
    OperatorNoValidChildrenError,
    SeedHistoricalDataPointMissingError,
    SeedHistoricalVariableMissingError,
    SeedSourceMetricNotFoundError,
    UnknownNodeTypeError,
    UnknownOperatorError,
)
from .models import (
    CalculationTree,
    CalculationTreeNode,
    ConstantNodeAttributes,
    DataNodeAttributes,
    ForecastCalculationResult,
    MetricCalculationResult,
    MetricNodeAttributes,
    MonthlyForecastValue,
    OperatorNodeAttributes,
    SeedNodeAttributes,
    Variable,
    is_configured,
)
from .ports import VariableDataPort
from .value_objects import CALCULATION_TYPES, CalculationType, NodeKind, OperatorSymbol

logger = get_logger(__name__)

BinaryOperation = Callable[[float, float], float | None]


def _divide(left: float, right: float) -> float | None:
    if right == 0:
        return None
    return left / right


def _power(left: float, right: float) -> float | None:
    try:
        return math.pow(left, right)
    except (ValueError, OverflowError):
        # negative base with a fractional exponent, or out of float range
        return None


_OPERATIONS: dict[OperatorSymbol, BinaryOperation] = {
    OperatorSymbol.ADD: operator.add,
    OperatorSymbol.SUBTRACT: operator.sub,
    OperatorSymbol.MULTIPLY: operator.mul,
    OperatorSymbol.DIVIDE: _divide,
    OperatorSymbol.POWER: _power,
}


def resolve_operation(node_id: str, op: str | None) -> BinaryOperation:
    try:
        return _OPERATIONS[OperatorSymbol(op)]
    except ValueError as exc:
        raise UnknownOperatorError(node_id, op) from exc


def order_children(node: CalculationTreeNode) -> list[CalculationTreeNode]:
    """
    Children in ``input_order`` first, then the rest in structural order.
    Ids listed without a matching child are skipped; each child is used once.
    """
    if not node.input_order:
        return list(node.children)
    remaining = list(node.children)
    ordered: list[CalculationTreeNode] = []
    for child_id in node.input_order:
        for position, child in enumerate(remaining):
            if child.node_id == child_id:
                ordered.append(remaining.pop(position))
                break
    ordered.extend(remaining)
    return ordered


def _seed_references(tree: CalculationTree) -> set[str]:
    references: set[str] = set()
    for node in tree.tree.walk():
        if node.node_type is NodeKind.SEED:
            source_id = cast(SeedNodeAttributes, node.node_data).source_metric_id
            if is_configured(source_id):
                references.add(cast(str, source_id))
    return references


def order_trees_by_dependencies(
    trees: Sequence[CalculationTree],
) -> list[CalculationTree]:
    """
    Evaluation order in which every tree comes after the top-level metrics its
    SEED nodes read from. Ties keep the input order.
    """
    position = {tree.root_metric_node_id: index for index, tree in enumerate(trees)}
    graph = nx.DiGraph()
    graph.add_nodes_from(position)
    for tree in trees:
        for source_id in _seed_references(tree):
            if source_id in position and source_id != tree.root_metric_node_id:
                graph.add_edge(source_id, tree.root_metric_node_id)

    try:
        ordered_ids = list(
            nx.lexicographical_topological_sort(graph, key=position.__getitem__)
        )
    except nx.NetworkXUnfeasible:
        cycle = [str(source) for source, _target, *_ in nx.find_cycle(graph)]
        raise CircularMetricDependencyError([*cycle, cycle[0]]) from None

    trees_by_id = {tree.root_metric_node_id: tree for tree in trees}
    return [trees_by_id[metric_id] for metric_id in ordered_ids]


class CalculationEngine:
    """
    Evaluates calculation trees month by month for the forecast, budget and
    historical series.

    Node values are memoized per request by (node id, month, series). Each
    root's monthly triple is kept so SEED nodes can carry the previous month
    of another metric forward.
    """

    def __init__(self, variable_data_service: VariableDataPort):
        self.variable_data_service = variable_data_service
        self._handlers: dict[
            NodeKind,
            Callable[
                [CalculationTreeNode, date, CalculationType, CalculationContext],
                float | None,
            ],
        ] = {
            NodeKind.DATA: self._evaluate_data,
            NodeKind.CONSTANT: self._evaluate_constant,
            NodeKind.OPERATOR: self._evaluate_operator,
            NodeKind.METRIC: self._evaluate_metric,
            NodeKind.SEED: self._evaluate_seed,
        }

    def calculate_forecast(
        self,
        trees: Sequence[CalculationTree],
        forecast_start_date: date | datetime,
        forecast_end_date: date | datetime,
        variables: Sequence[Variable],
    ) -> ForecastCalculationResult:
        start = first_of_month(forecast_start_date)
        end = first_of_month(forecast_end_date)
        month_count = months_between_inclusive(start, end)
        if month_count < 1:
            raise InvalidDateRangeError(
                f"Forecast end date {end.isoformat()} is before start date "
                f"{start.isoformat()}"
            )
        if month_count > MAX_FORECAST_MONTHS:
            raise InvalidDateRangeError(
                f"Forecast range of {month_count} months exceeds the limit of "
                f"{MAX_FORECAST_MONTHS}"
            )

        context = CalculationContext.for_request(trees, start, end, variables)
        log_event(
            logger,
            event="forecast_calculation_started",
            message="forecast calculation started",
            fields={
                "tree_count": len(trees),
                "month_count": month_count,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "variable_count": len(variables),
            },
        )

        values_by_metric: dict[str, tuple[MonthlyForecastValue, ...]] = {}
        for tree in order_trees_by_dependencies(trees):
            with log_context(metric_id=tree.root_metric_node_id):
                values_by_metric[tree.root_metric_node_id] = self._evaluate_tree(
                    tree, start, month_count, context
                )

        result = ForecastCalculationResult(
            forecast_id="",
            calculated_at=datetime.now(timezone.utc),
            metrics=tuple(
                MetricCalculationResult(
                    metric_node_id=tree.root_metric_node_id,
                    values=values_by_metric[tree.root_metric_node_id],
                )
                for tree in trees
            ),
        )
        log_event(
            logger,
            event="forecast_calculation_completed",
            message="forecast calculation completed",
            fields={
                "metric_count": len(result.metrics),
                "month_count": month_count,
                "cached_node_values": len(context.calculation_cache),
            },
        )
        return result

    def _evaluate_tree(
        self,
        tree: CalculationTree,
        start: date,
        month_count: int,
        context: CalculationContext,
    ) -> tuple[MonthlyForecastValue, ...]:
        values: list[MonthlyForecastValue] = []
        month_starts = iter_month_starts(start, month_count)
        for month_offset, target_date in enumerate(month_starts):
            month_context = context.at_month(month_offset)
            series = {
                calc_type: self.evaluate_node(
                    tree.tree, target_date, calc_type, month_context
                )
                for calc_type in CALCULATION_TYPES
            }
            monthly = MonthlyForecastValue(
                date=target_date,
                forecast=series[CalculationType.FORECAST],
                budget=series[CalculationType.BUDGET],
                historical=series[CalculationType.HISTORICAL],
            )
            values.append(monthly)
            context.record_month(tree.root_metric_node_id, month_offset, monthly)
        log_event(
            logger,
            event="forecast_metric_evaluated",
            message="metric series evaluated",
            level=logging.DEBUG,
            fields={"month_count": month_count},
        )
        return tuple(values)

    def evaluate_node(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        key = CacheKey(node.node_id, month_index(target_date), calc_type)
        if key in context.calculation_cache:
            return context.calculation_cache[key]

        handler = self._handlers.get(node.node_type)
        try:
            if handler is None:
                raise UnknownNodeTypeError(node.node_type, node_id=node.node_id)
            value = handler(node, target_date, calc_type, context)
        except NodeEvaluationError:
            raise
        except CalculationError as exc:
            raise NodeEvaluationError(node.node_id, exc) from exc

        context.calculation_cache[key] = value
        if logger.isEnabledFor(logging.DEBUG):
            log_event(
                logger,
                event="forecast_node_evaluated",
                message="node evaluated",
                level=logging.DEBUG,
                fields={
                    "node_id": node.node_id,
                    "node_type": node.node_type.value,
                    "date": target_date.isoformat(),
                    "calc_type": calc_type.value,
                    "value": value,
                },
            )
        return value

    def _evaluate_data(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        attrs = cast(DataNodeAttributes, node.node_data)
        if not is_configured(attrs.variable_id):
            return None
        return self.variable_data_service.get_variable_value_with_offset(
            cast(str, attrs.variable_id),
            target_date,
            attrs.offset_months or 0,
            context.variables,
        )

    def _evaluate_constant(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        return cast(ConstantNodeAttributes, node.node_data).value

    def _evaluate_operator(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        attrs = cast(OperatorNodeAttributes, node.node_data)
        operation = resolve_operation(node.node_id, attrs.op)
        children = order_children(node)
        if not children:
            raise OperatorNoValidChildrenError(node.node_id)

        result: float | None = None
        for position, child in enumerate(children):
            value = self.evaluate_node(child, target_date, calc_type, context)
            if value is None:
                return None
            if position == 0:
                result = value
                continue
            result = operation(cast(float, result), value)
            if result is None or not math.isfinite(result):
                return None
        return result

    def _evaluate_metric(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        if len(node.children) > 1:
            raise MetricChildCountError(node.node_id, len(node.children))
        attrs = cast(MetricNodeAttributes, node.node_data)
        child = node.children[0] if node.children else None

        if calc_type is CalculationType.FORECAST:
            if child is not None:
                return self.evaluate_node(child, target_date, calc_type, context)
            fallback_id = attrs.budget_variable_id
        else:
            if attrs.use_calculated and child is not None:
                return self.evaluate_node(child, target_date, calc_type, context)
            fallback_id = (
                attrs.budget_variable_id
                if calc_type is CalculationType.BUDGET
                else attrs.historical_variable_id
            )

        if not is_configured(fallback_id):
            return None
        return self.variable_data_service.get_variable_value_for_month(
            cast(str, fallback_id), target_date, context.variables
        )

    def _evaluate_seed(
        self,
        node: CalculationTreeNode,
        target_date: date,
        calc_type: CalculationType,
        context: CalculationContext,
    ) -> float | None:
        source_id = cast(SeedNodeAttributes, node.node_data).source_metric_id
        if context.current_month == 0:
            return self._bootstrap_seed(node, source_id, context)

        if source_id is None:
            return None
        previous = context.cached_month(source_id, context.current_month - 1)
        if previous is None:
            return None
        return previous.value_for(calc_type)

    def _bootstrap_seed(
        self,
        node: CalculationTreeNode,
        source_id: str | None,
        context: CalculationContext,
    ) -> float | None:
        """First requested month: read the source metric's historical value
        for the month before the range starts."""
        source = context.metric_nodes.get(source_id) if source_id else None
        if source is None:
            raise SeedSourceMetricNotFoundError(node.node_id, source_id)
        source_id = cast(str, source_id)

        historical_id = cast(MetricNodeAttributes, source.node_data).historical_variable_id
        if not is_configured(historical_id):
            raise SeedHistoricalVariableMissingError(node.node_id, source_id)
        historical_id = cast(str, historical_id)

        previous_month = add_months(context.forecast_start_date, -1)
        value = self.variable_data_service.get_variable_value_for_month(
            historical_id, previous_month, context.variables
        )
        if value is not None:
            return value

        variable = self.variable_data_service.find_variable(
            historical_id, context.variables
        )
        if variable is None:
            log_event(
                logger,
                event="forecast_seed_variable_absent",
                message="historical variable for SEED bootstrap not supplied",
                level=logging.WARNING,
                fields={
                    "node_id": node.node_id,
                    "source_metric_id": source_id,
                    "variable_id": historical_id,
                },
            )
            return None

        available = sorted(
            {
                first_of_month(point.date)
                for point in variable.time_series
                if point.value is not None
            }
        )
        raise SeedHistoricalDataPointMissingError(
            node_id=node.node_id,
            expected_date=previous_month,
            variable_id=variable.id,
            variable_name=variable.name,
            available_dates=available,
        )
