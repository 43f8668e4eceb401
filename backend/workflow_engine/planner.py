"""
Build execution plans for validated graphs.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Set

from .errors import PlanningError
from .schema import Edge, Graph


@dataclass
class ExecutionPlan:
    ordered_nodes: List[str]
    upstream: Dict[str, List[Edge]]
    downstream: Dict[str, List[Edge]]
    terminal_nodes: Set[str]

    @property
    def last_node(self):
        return self.ordered_nodes[-1] if self.ordered_nodes else None


class PlanBuilder:
    """Turns a validated graph into a deterministic run order."""

    def build(self, graph: Graph) -> ExecutionPlan:
        upstream: Dict[str, List[Edge]] = {node.id: [] for node in graph.nodes}
        downstream: Dict[str, List[Edge]] = {node.id: [] for node in graph.nodes}
        for edge in graph.edges:
            downstream[edge.source].append(edge)
            upstream[edge.target].append(edge)

        ordered_nodes = self._topological_order(graph, downstream, upstream)
        terminal_nodes = {node_id for node_id, edges in downstream.items() if not edges}

        return ExecutionPlan(
            ordered_nodes=ordered_nodes,
            upstream=upstream,
            downstream=downstream,
            terminal_nodes=terminal_nodes,
        )

    @staticmethod
    def _topological_order(
        graph: Graph,
        downstream: Dict[str, List[Edge]],
        upstream: Dict[str, List[Edge]],
    ) -> List[str]:
        indegree = {node_id: len(edges) for node_id, edges in upstream.items()}

        # Seed in declaration order so identical graphs always yield the same order
        queue = deque(node.id for node in graph.nodes if indegree[node.id] == 0)
        ordered = []

        while queue:
            node_id = queue.popleft()
            ordered.append(node_id)
            for edge in downstream[node_id]:
                indegree[edge.target] -= 1
                if indegree[edge.target] == 0:
                    queue.append(edge.target)

        if len(ordered) != len(indegree):
            raise PlanningError("Graph contains cycles")
        return ordered
