from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import cast

import networkx as nx

from forecast_graph.shared.kernel.tools.logger import get_logger, log_event

from .models import (
    GraphEdge,
    GraphNode,
    GraphValidationResult,
    MetricNodeAttributes,
    SeedNodeAttributes,
    ValidationIssue,
    is_configured,
)
from .value_objects import NodeKind, ValidationIssueCode

logger = get_logger(__name__)


def _index_nodes(nodes: Sequence[GraphNode]) -> dict[str, GraphNode]:
    index: dict[str, GraphNode] = {}
    for node in nodes:
        index.setdefault(node.id, node)
    return index


class GraphValidator:
    """
    Structural rules for an authored forecast graph.
    All rules run on every call; errors block conversion, warnings do not.
    """

    def validate_graph(
        self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> GraphValidationResult:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        nodes_by_id = _index_nodes(nodes)

        metric_nodes = [node for node in nodes if node.kind is NodeKind.METRIC]
        if not metric_nodes:
            errors.append(
                ValidationIssue(
                    code=ValidationIssueCode.MISSING_METRIC_NODE,
                    message="Graph must contain at least one METRIC node",
                )
            )

        cycle = self.find_cycle(nodes, edges)
        if cycle is not None:
            errors.append(
                ValidationIssue(
                    code=ValidationIssueCode.CYCLE_DETECTED,
                    message=(
                        "Graph contains cycles - forecast graphs must be acyclic "
                        f"({' -> '.join([*cycle, cycle[0]])})"
                    ),
                    node_id=cycle[0],
                )
            )

        errors.extend(self._check_input_counts(nodes, edges))
        errors.extend(self._check_edge_endpoints(nodes_by_id, edges))
        warnings.extend(self._check_orphans(nodes, edges))
        errors.extend(self._check_seed_references(nodes, nodes_by_id))
        warnings.extend(self._check_metric_configuration(metric_nodes))

        if metric_nodes and not self.find_top_level_metric_nodes(nodes, edges):
            errors.append(
                ValidationIssue(
                    code=ValidationIssueCode.NO_TOP_LEVEL_METRIC,
                    message=(
                        "All METRIC nodes are connected as inputs to other METRIC "
                        "nodes - at least one METRIC node must be at the top level"
                    ),
                )
            )

        result = GraphValidationResult(errors=tuple(errors), warnings=tuple(warnings))
        log_event(
            logger,
            event="forecast_graph_validated",
            message="forecast graph validation completed",
            level=logging.INFO if result.is_valid else logging.WARNING,
            fields={
                "node_count": len(nodes),
                "edge_count": len(edges),
                "is_valid": result.is_valid,
                "error_codes": sorted({issue.code.value for issue in result.errors}),
                "warning_count": len(result.warnings),
            },
        )
        return result

    def find_top_level_metric_nodes(
        self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> list[GraphNode]:
        """METRIC nodes that do not feed another METRIC node directly."""
        metric_ids = {node.id for node in nodes if node.kind is NodeKind.METRIC}
        consumed = {
            edge.source
            for edge in edges
            if edge.target in metric_ids and edge.source in metric_ids
        }
        return [
            node
            for node in nodes
            if node.kind is NodeKind.METRIC and node.id not in consumed
        ]

    @staticmethod
    def find_cycle(
        nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> list[str] | None:
        """
        Return the node ids of one directed cycle, or None for an acyclic graph.
        Edge endpoints that are not declared nodes still take part in the search.
        """
        graph = nx.DiGraph()
        graph.add_nodes_from(sorted(node.id for node in nodes))
        graph.add_edges_from(sorted((edge.source, edge.target) for edge in edges))
        try:
            cycle_edges = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            return None
        return [str(source) for source, _target, *_ in cycle_edges]

    @staticmethod
    def _check_input_counts(
        nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> list[ValidationIssue]:
        input_counts = Counter(edge.target for edge in edges)
        issues: list[ValidationIssue] = []
        seen: set[str] = set()
        for node in nodes:
            if node.id in seen:
                continue
            seen.add(node.id)
            count = input_counts.get(node.id, 0)
            if node.kind is not NodeKind.OPERATOR and count > 1:
                issues.append(
                    ValidationIssue(
                        code=ValidationIssueCode.INVALID_INPUT_COUNT,
                        message=(
                            f"Node {node.id} ({node.kind.value}) has {count} inputs "
                            "but only OPERATOR nodes can accept multiple inputs"
                        ),
                        node_id=node.id,
                    )
                )
        return issues

    @staticmethod
    def _check_edge_endpoints(
        nodes_by_id: dict[str, GraphNode], edges: Sequence[GraphEdge]
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for edge in edges:
            for role, endpoint in (("source", edge.source), ("target", edge.target)):
                if endpoint in nodes_by_id:
                    continue
                issues.append(
                    ValidationIssue(
                        code=ValidationIssueCode.DANGLING_EDGE,
                        message=(
                            f"Edge {edge.id} references non-existent {role} node: "
                            f"{endpoint}"
                        ),
                        edge_id=edge.id,
                    )
                )
        return issues

    @staticmethod
    def _check_orphans(
        nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]
    ) -> list[ValidationIssue]:
        connected = {edge.source for edge in edges} | {edge.target for edge in edges}
        return [
            ValidationIssue(
                code=ValidationIssueCode.ORPHAN_NODE,
                message=(
                    f"Node {node.id} ({node.kind.value}) is not connected to any "
                    "other nodes"
                ),
                node_id=node.id,
            )
            for node in nodes
            if node.id not in connected and node.kind is not NodeKind.METRIC
        ]

    @staticmethod
    def _check_seed_references(
        nodes: Sequence[GraphNode], nodes_by_id: dict[str, GraphNode]
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for node in nodes:
            if node.kind is not NodeKind.SEED:
                continue
            attrs = cast(SeedNodeAttributes, node.attributes)
            source_id = attrs.source_metric_id
            if not is_configured(source_id):
                issues.append(
                    ValidationIssue(
                        code=ValidationIssueCode.MISSING_SEED_REFERENCE,
                        message=f"SEED node {node.id} missing required sourceMetricId",
                        node_id=node.id,
                    )
                )
                continue

            referenced = nodes_by_id.get(source_id)  # type: ignore[arg-type]
            if referenced is None:
                issues.append(
                    ValidationIssue(
                        code=ValidationIssueCode.MISSING_SEED_REFERENCE,
                        message=(
                            f"SEED node {node.id} references non-existent metric: "
                            f"{source_id}"
                        ),
                        node_id=node.id,
                    )
                )
            elif referenced.kind is not NodeKind.METRIC:
                issues.append(
                    ValidationIssue(
                        code=ValidationIssueCode.INVALID_SEED_REFERENCE_TYPE,
                        message=(
                            f"SEED node {node.id} sourceMetricId must reference a "
                            f"METRIC node, found: {referenced.kind.value} "
                            f"({source_id})"
                        ),
                        node_id=node.id,
                    )
                )
        return issues

    @staticmethod
    def _check_metric_configuration(
        metric_nodes: Sequence[GraphNode],
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []

        def warn(node_id: str, message: str) -> None:
            issues.append(
                ValidationIssue(
                    code=ValidationIssueCode.METRIC_CONFIG_WARNING,
                    message=message,
                    node_id=node_id,
                )
            )

        for node in metric_nodes:
            attrs = cast(MetricNodeAttributes, node.attributes)
            for series, variable_id in (
                ("budget", attrs.budget_variable_id),
                ("historical", attrs.historical_variable_id),
            ):
                if is_configured(variable_id):
                    continue
                if attrs.use_calculated:
                    warn(
                        node.id,
                        f"METRIC node {node.id} uses calculated values but has no "
                        f"{series} variable fallback",
                    )
                else:
                    warn(
                        node.id,
                        f"METRIC node {node.id} has no {series} variable configured "
                        f"- {series} values will be null",
                    )
            if not attrs.label:
                warn(node.id, f"METRIC node {node.id} missing label")
        return issues
