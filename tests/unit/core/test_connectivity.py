"""
Unit tests for core/connectivity.py

Tests weak connectivity and component partitioning:
- Direction is ignored
- Cycles terminate
- Components are listed in discovery order
"""
import pytest

from core.connectivity import is_connected, split_graph
from core.graph_db import NodeNotFoundError


# =============================================================================
# IS_CONNECTED TESTS
# =============================================================================

def test_is_connected_ignores_direction(sample_graph):
    """
    Validate that connectivity follows edges in both directions.

    Verifies:
    - Forward path (1 -> ... -> 4)
    - Backward path (4 <- ... <- 1)
    - Path through a shared dependency (8 and 6 via 2, 3, 4, 5)
    """
    assert is_connected(sample_graph, 1, 4)
    assert is_connected(sample_graph, 4, 1)
    assert is_connected(sample_graph, 8, 6)


def test_is_connected_separate_components(sample_graph):
    assert not is_connected(sample_graph, 1, 9)
    assert not is_connected(sample_graph, 10, 7)
    assert is_connected(sample_graph, 10, 9)


def test_is_connected_same_node(fresh_graph):
    node = fresh_graph.add_node()

    assert is_connected(fresh_graph, node.id, node.id)


def test_is_connected_terminates_on_cycle(fresh_graph):
    a, b, c, d = (fresh_graph.add_node() for _ in range(4))
    fresh_graph.add_edge(a.id, b.id)
    fresh_graph.add_edge(b.id, c.id)
    fresh_graph.add_edge(c.id, a.id)

    assert is_connected(fresh_graph, a.id, c.id)
    assert not is_connected(fresh_graph, a.id, d.id)


def test_is_connected_unknown_node(sample_graph):
    with pytest.raises(NodeNotFoundError):
        is_connected(sample_graph, 1, 99)
    with pytest.raises(NodeNotFoundError):
        is_connected(sample_graph, 99, 1)


def test_is_connected_undirected(undirected_graph):
    a, b, c = (undirected_graph.add_node() for _ in range(3))
    undirected_graph.add_edge(a.id, b.id)

    assert is_connected(undirected_graph, b.id, a.id)
    assert not is_connected(undirected_graph, a.id, c.id)


# =============================================================================
# SPLIT_GRAPH TESTS
# =============================================================================

def test_split_graph(sample_graph):
    """
    Validate that split_graph partitions the reference graph in two.

    Verifies:
    - Two components
    - Members keep registration order
    - Every node lands in exactly one component
    """
    components = split_graph(sample_graph)

    assert [[n.id for n in c] for c in components] == [
        [1, 2, 3, 4, 5, 6, 7, 8],
        [9, 10],
    ]


def test_split_graph_isolated_nodes(fresh_graph):
    for _ in range(3):
        fresh_graph.add_node()

    assert [[n.id for n in c] for c in split_graph(fresh_graph)] == [[1], [2], [3]]


def test_split_graph_empty(fresh_graph):
    assert split_graph(fresh_graph) == []


def test_split_graph_late_bridge(fresh_graph):
    """A node registered after both halves joins the first group it touches."""
    a, b, c = (fresh_graph.add_node() for _ in range(3))
    fresh_graph.add_edge(c.id, a.id)
    fresh_graph.add_edge(c.id, b.id)

    assert [[n.id for n in comp] for comp in split_graph(fresh_graph)] == [[1, 2, 3]]
