"""
Weak connectivity and component partitioning.

Both functions look at the undirected view of a Graph: an edge joins its
endpoints regardless of direction. Nothing here mutates the graph.
"""
import logging
from collections import deque
from typing import List

from core.graph_db import Graph, NodeNotFoundError
from core.schemas import Node

logger = logging.getLogger(__name__)


def is_connected(graph: Graph, node_a: int, node_b: int) -> bool:
    """
    Check whether two nodes are connected in any way.

    Breadth-first expansion from node_a over both outgoing and incoming
    edges. Each node is expanded at most once, so cycles terminate.

    Args:
        graph: The graph to search
        node_a: Id of the node to start from
        node_b: Id of the node to look for

    Returns:
        True if node_b is reachable from node_a ignoring edge direction

    Raises:
        NodeNotFoundError: If either id is not registered
    """
    for node_id in (node_a, node_b):
        if node_id not in graph:
            raise NodeNotFoundError(node_id)

    if node_a == node_b:
        return True

    visited = {node_a}
    frontier = deque([node_a])

    while frontier:
        current = frontier.popleft()
        neighbours = [e.end for e in graph.get_outgoing_edges(current)]
        neighbours += [e.start for e in graph.get_incoming_edges(current)]
        for neighbour in neighbours:
            if neighbour == node_b:
                return True
            if neighbour not in visited:
                visited.add(neighbour)
                frontier.append(neighbour)

    return False


def split_graph(graph: Graph) -> List[List[Node]]:
    """
    Partition all nodes into maximal weakly connected groups.

    Nodes are taken in registration order. Each node joins the first group
    whose first member it is connected to, otherwise it opens a new group.
    Comparing against one member per group is enough because connectivity
    is an equivalence relation on a fixed graph.

    Returns:
        One list of nodes per component, in discovery order
    """
    subgraphs: List[List[Node]] = []
    for node in graph.iter_nodes():
        for subgraph in subgraphs:
            if is_connected(graph, subgraph[0].id, node.id):
                subgraph.append(node)
                break
        else:
            subgraphs.append([node])

    logger.debug("split %r into %d component(s)", graph, len(subgraphs))
    return subgraphs
