from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import cast

from forecast_graph.shared.kernel.tools.logger import get_logger, log_event

from .errors import GraphValidationError
from .graph_validator import GraphValidator
from .models import (
    CalculationTree,
    CalculationTreeNode,
    GraphEdge,
    GraphNode,
    GraphValidationResult,
    OperatorNodeAttributes,
)
from .value_objects import NodeKind

logger = get_logger(__name__)


class TreeBuilder:
    """
    Converts a validated forecast graph into one calculation tree per
    top-level METRIC node.

    Children of a node are the sources of the edges that target it, in edge id
    order. A graph node reachable from several parents (or several trees) is
    copied into each position; trees never share node objects.
    """

    def __init__(self, validator: GraphValidator | None = None):
        self.validator = validator or GraphValidator()

    def convert_to_trees(
        self,
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        validation: GraphValidationResult | None = None,
    ) -> list[CalculationTree]:
        """A result from an earlier validate_graph on the same graph is reused."""
        if validation is None:
            validation = self.validator.validate_graph(nodes, edges)
        if not validation.is_valid:
            log_event(
                logger,
                event="forecast_tree_conversion_rejected",
                message="graph conversion rejected by validation",
                level=logging.WARNING,
                error_code=GraphValidationError.error_code,
                fields={"errors": validation.error_messages},
            )
            raise GraphValidationError(validation)
        if validation.warnings:
            log_event(
                logger,
                event="forecast_tree_conversion_warnings",
                message="graph converted with validation warnings",
                level=logging.WARNING,
                fields={"warnings": validation.warning_messages},
            )

        nodes_by_id: dict[str, GraphNode] = {}
        for node in nodes:
            nodes_by_id.setdefault(node.id, node)
        children_by_target: dict[str, list[str]] = defaultdict(list)
        for edge in sorted(edges, key=lambda item: item.id):
            children_by_target[edge.target].append(edge.source)

        roots = self.validator.find_top_level_metric_nodes(nodes, edges)
        trees = [
            CalculationTree(
                root_metric_node_id=root.id,
                tree=self._build_subtree(root.id, nodes_by_id, children_by_target),
            )
            for root in roots
        ]
        log_event(
            logger,
            event="forecast_trees_built",
            message="calculation trees built",
            fields={
                "tree_count": len(trees),
                "root_metric_ids": [tree.root_metric_node_id for tree in trees],
            },
        )
        return trees

    def _build_subtree(
        self,
        node_id: str,
        nodes_by_id: dict[str, GraphNode],
        children_by_target: dict[str, list[str]],
    ) -> CalculationTreeNode:
        node = nodes_by_id[node_id]
        children = tuple(
            self._build_subtree(child_id, nodes_by_id, children_by_target)
            for child_id in children_by_target.get(node_id, ())
            if child_id in nodes_by_id
        )
        input_order = None
        if node.kind is NodeKind.OPERATOR:
            input_order = cast(OperatorNodeAttributes, node.attributes).input_order
        return CalculationTreeNode(
            node_id=node.id,
            node_type=node.kind,
            node_data=node.attributes,
            children=children,
            input_order=input_order,
        )
