import pytest

from workflow_engine import Graph, PlanBuilder
from workflow_engine.errors import PlanningError

from conftest import node, edge


def plan_for(nodes, edges):
    return PlanBuilder().build(Graph.from_dict({'nodes': nodes, 'edges': edges}))


def test_every_edge_points_forward():
    nodes = [
        node('export', 'export-json'),
        node('score', 'quality-score'),
        node('walls', 'filter-class'),
        node('loader', 'loader'),
        node('bsdd', 'bsdd-mapper'),
    ]
    edges = [
        edge('bsdd', 'score'),
        edge('walls', 'bsdd'),
        edge('score', 'export'),
        edge('loader', 'walls'),
    ]

    plan = plan_for(nodes, edges)
    index = {node_id: i for i, node_id in enumerate(plan.ordered_nodes)}

    assert sorted(plan.ordered_nodes) == sorted(n['id'] for n in nodes)
    for e in edges:
        assert index[e['source']] < index[e['target']]


def test_ready_nodes_keep_declaration_order():
    plan = plan_for([node('B', 'loader'), node('A', 'loader')], [])

    assert plan.ordered_nodes == ['B', 'A']


def test_tie_break_ignores_edge_order():
    nodes = [node('L', 'loader'), node('B', 'filter-class'), node('A', 'filter-class')]

    first = plan_for(nodes, [edge('L', 'B'), edge('L', 'A')])
    second = plan_for(nodes, [edge('L', 'A'), edge('L', 'B')])

    assert first.ordered_nodes[0] == 'L'
    assert first.ordered_nodes[0] == second.ordered_nodes[0]
    assert set(first.ordered_nodes[1:]) == {'A', 'B'}


@pytest.mark.parametrize('edges', [
    [edge('A', 'D'), edge('B', 'C')],
    [edge('B', 'C'), edge('A', 'D')],
])
def test_roots_follow_node_order_not_edge_order(edges):
    nodes = [
        node('B', 'loader'),
        node('A', 'loader'),
        node('C', 'filter-class'),
        node('D', 'filter-class'),
    ]

    assert plan_for(nodes, edges).ordered_nodes == ['B', 'A', 'C', 'D']


def test_independent_roots_are_seeded_before_successors():
    nodes = [node('L1', 'loader'), node('F', 'filter-class'), node('L2', 'loader')]

    plan = plan_for(nodes, [edge('L1', 'F')])

    assert plan.ordered_nodes == ['L1', 'L2', 'F']


def test_upstream_edges_keep_declared_order():
    nodes = [node('L1', 'loader'), node('L2', 'loader'), node('F', 'filter-class')]

    plan = plan_for(nodes, [edge('L2', 'F'), edge('L1', 'F')])

    assert [e.source for e in plan.upstream['F']] == ['L2', 'L1']


def test_terminal_nodes_and_last_node(wall_export_graph):
    plan = PlanBuilder().build(Graph.from_dict(wall_export_graph))

    assert plan.terminal_nodes == {'export'}
    assert plan.last_node == 'export'


def test_cycle_raises_planning_error():
    nodes = [node('L', 'loader'), node('A', 'filter-class'), node('B', 'filter-class')]

    with pytest.raises(PlanningError):
        plan_for(nodes, [edge('L', 'A'), edge('A', 'B'), edge('B', 'A')])
