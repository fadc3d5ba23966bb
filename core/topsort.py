"""
Topological sequencing per connected component.

An edge X -> Y means "X depends on Y": Y has to be processed before X.
Each component is sequenced on its own, starting from its nodes with the
fewest outgoing edges (the sinks, when the component has any).

Example:

    1 -> 2 -> 3 -> 4
         |        ^
         v        5
         8      ^   ^
                6   7

    10 -> 9

    top_sort(graph) -> [[4, 8, 3, 5, 2, 6, 7, 1], [9, 10]]  (as node ids)
"""
import logging
from typing import List, Optional, Sequence, Set

from core.connectivity import split_graph
from core.graph_db import CycleDetectedError, Graph
from core.schemas import Node

logger = logging.getLogger(__name__)


def get_nodes_with_least_outgoing_edges(
    graph: Graph,
    components: Optional[Sequence[Sequence[Node]]] = None,
) -> List[List[Node]]:
    """
    For each component, the nodes with the minimum out-degree.

    Args:
        graph: The graph the components belong to
        components: Output of split_graph(); computed when omitted

    Returns:
        One list per component, nodes in component order
    """
    if components is None:
        components = split_graph(graph)

    result: List[List[Node]] = []
    for component in components:
        least: List[Node] = []
        least_count: Optional[int] = None
        for node in component:
            count = graph.out_degree(node.id)
            if least_count is None or count < least_count:
                least_count = count
                least = [node]
            elif count == least_count:
                least.append(node)
        result.append(least)
    return result


def top_sort_component(graph: Graph, seeds: Sequence[Node]) -> List[Node]:
    """
    Produce a processing order for one component.

    The candidate list starts with the seeds. Each pass walks the list: a
    candidate whose dependencies (end nodes of its outgoing edges) are all
    processed is emitted and removed, and its dependants (start nodes of
    its incoming edges) are appended in ascending id order. Candidates
    appended during a pass are visited in that same pass.

    Raises:
        CycleDetectedError: If a full pass emits nothing
    """
    processed: List[Node] = []
    processed_ids: Set[int] = set()
    candidates: List[Node] = list(seeds)
    candidate_ids: Set[int] = {n.id for n in candidates}

    while candidates:
        progressed = False

        i = 0
        while i < len(candidates):
            current = candidates[i]
            dependencies = [e.end for e in graph.get_outgoing_edges(current.id)]
            if not all(dep in processed_ids for dep in dependencies):
                i += 1
                continue

            processed.append(current)
            processed_ids.add(current.id)
            del candidates[i]
            candidate_ids.discard(current.id)
            progressed = True

            dependants = sorted({e.start for e in graph.get_incoming_edges(current.id)})
            for dependant_id in dependants:
                if dependant_id not in candidate_ids and dependant_id not in processed_ids:
                    candidates.append(graph.get_node_by_id(dependant_id))
                    candidate_ids.add(dependant_id)

        if not progressed:
            stuck = sorted(candidate_ids)
            logger.debug("no progress possible, remaining candidates: %s", stuck)
            raise CycleDetectedError()

    return processed


def top_sort(graph: Graph) -> List[List[Node]]:
    """
    Topologically sort every connected component of a graph.

    Returns:
        For each component (in split_graph order) its processing order

    Raises:
        CycleDetectedError: If any component contains a cycle
    """
    components = split_graph(graph)
    result: List[List[Node]] = []
    for seeds in get_nodes_with_least_outgoing_edges(graph, components):
        result.append(top_sort_component(graph, seeds))
    return result
