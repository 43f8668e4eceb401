"""
Graph schema definitions and validation helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .constants import ENTRY_NODE_TYPES
from .errors import GraphFormatError


@dataclass(frozen=True)
class Node:
    id: str
    type: str
    label: str = ""
    config: Mapping[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.label or self.id

    @property
    def is_entry(self) -> bool:
        return self.type in ENTRY_NODE_TYPES


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str


@dataclass(frozen=True)
class Graph:
    """
    Workflow graph as submitted by the editor.

    Node order is significant: it breaks ties between nodes that become
    ready at the same time. Edge order decides which predecessor feeds a
    node with several incoming edges.
    """

    nodes: List[Node]
    edges: List[Edge]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Graph":
        """
        Build a Graph from the editor's JSON payload.

        Accepts both the flat layout (``label``/``config`` on the node) and the
        canvas layout where they sit under ``data``.
        """
        if not isinstance(payload, Mapping):
            raise GraphFormatError("Graph payload must be an object")

        raw_nodes = payload.get('nodes', [])
        raw_edges = payload.get('edges', [])
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise GraphFormatError("Graph nodes and edges must be lists")

        return cls(
            nodes=[_parse_node(raw) for raw in raw_nodes],
            edges=[_parse_edge(raw) for raw in raw_edges],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [
                {'id': n.id, 'type': n.type, 'label': n.label, 'config': dict(n.config)}
                for n in self.nodes
            ],
            'edges': [
                {'id': e.id, 'source': e.source, 'target': e.target}
                for e in self.edges
            ],
        }

    def get_node(self, node_id: str) -> Optional[Node]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def incoming_edges(self, node_id: str) -> List[Edge]:
        """Edges targeting ``node_id``, in declaration order."""
        return [e for e in self.edges if e.target == node_id]


def _parse_node(raw: Any) -> Node:
    if not isinstance(raw, Mapping):
        raise GraphFormatError(f"Node definition must be an object: {raw!r}")
    node_id = raw.get('id')
    node_type = raw.get('type')
    if node_id in (None, '') or not node_type:
        raise GraphFormatError(f"Node definition requires 'id' and 'type': {raw!r}")

    data = raw.get('data')
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise GraphFormatError(f"Data of node {node_id} must be an object")
    label = raw.get('label', data.get('label'))
    config = raw.get('config', data.get('config')) or {}
    if not isinstance(config, Mapping):
        raise GraphFormatError(f"Config of node {node_id} must be an object")

    return Node(
        id=str(node_id),
        type=str(node_type),
        label=str(label) if label is not None else str(node_id),
        config=dict(config),
    )


def _parse_edge(raw: Any) -> Edge:
    if not isinstance(raw, Mapping):
        raise GraphFormatError(f"Edge definition must be an object: {raw!r}")
    source = raw.get('source')
    target = raw.get('target')
    if source in (None, '') or target in (None, ''):
        raise GraphFormatError(f"Edge definition requires 'source' and 'target': {raw!r}")
    edge_id = raw.get('id') or f"{source}-{target}"
    return Edge(id=str(edge_id), source=str(source), target=str(target))


class GraphValidator:
    """
    Checks structural invariants of a workflow graph.

    Every check runs, so the caller gets the complete list of violations in
    one pass. An empty list means the graph is valid.
    """

    def __init__(self, entry_types: Optional[Iterable[str]] = None):
        self.entry_types = frozenset(entry_types) if entry_types is not None else ENTRY_NODE_TYPES

    def validate(self, graph: Graph) -> List[str]:
        errors: List[str] = []

        if not graph.nodes:
            errors.append("Workflow has no nodes")

        node_ids: Set[str] = set()
        for node in graph.nodes:
            if node.id in node_ids:
                errors.append(f"Duplicate node id: {node.id}")
            node_ids.add(node.id)

        for edge in graph.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in node_ids:
                    errors.append(f"Edge {edge.id} references unknown node {endpoint}")

        targeted = {edge.target for edge in graph.edges}
        for node in graph.nodes:
            if node.type not in self.entry_types and node.id not in targeted:
                errors.append(f"Node {node.display_name} ({node.id}) is not connected")

        if self.has_cycle(graph):
            errors.append("Workflow contains circular dependencies")

        return errors

    def is_valid(self, graph: Graph) -> bool:
        return not self.validate(graph)

    @staticmethod
    def has_cycle(graph: Graph) -> bool:
        """Depth-first search keeping the current path on an explicit stack."""
        outgoing: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
        for edge in graph.edges:
            if edge.source in outgoing and edge.target in outgoing:
                outgoing[edge.source].append(edge.target)

        visited: Set[str] = set()
        on_stack: Set[str] = set()

        for start in outgoing:
            if start in visited:
                continue
            visited.add(start)
            on_stack.add(start)
            stack = [(start, iter(outgoing[start]))]

            while stack:
                node_id, successors = stack[-1]
                next_id = next(successors, None)
                if next_id is None:
                    on_stack.discard(node_id)
                    stack.pop()
                elif next_id in on_stack:
                    return True
                elif next_id not in visited:
                    visited.add(next_id)
                    on_stack.add(next_id)
                    stack.append((next_id, iter(outgoing[next_id])))

        return False
