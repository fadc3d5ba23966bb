"""
TRACGRAPH CORE - Central exports for the graph engine.

This module provides access to:
- The Graph aggregate and its error hierarchy
- Entity and snapshot schemas
- Connectivity, component partitioning and topological sequencing
"""

from core.ontology import ElementKind, GraphType, WeightingType
from core.schemas import (
    Edge,
    EdgeRecord,
    ElementRef,
    GraphSnapshot,
    Node,
    NodeRecord,
    Payload,
    PayloadRecord,
)
from core.graph_db import (
    CycleDetectedError,
    Graph,
    GraphError,
    GraphInvariantError,
    LoopRejectedError,
    MultiEdgeRejectedError,
    NodeNotFoundError,
    SnapshotError,
    create_empty_graph,
)
from core.connectivity import is_connected, split_graph
from core.topsort import get_nodes_with_least_outgoing_edges, top_sort, top_sort_component

__all__ = [
    # Vocabulary
    "ElementKind",
    "GraphType",
    "WeightingType",
    # Schemas
    "Edge",
    "EdgeRecord",
    "ElementRef",
    "GraphSnapshot",
    "Node",
    "NodeRecord",
    "Payload",
    "PayloadRecord",
    # Graph
    "Graph",
    "create_empty_graph",
    # Errors
    "GraphError",
    "NodeNotFoundError",
    "LoopRejectedError",
    "MultiEdgeRejectedError",
    "GraphInvariantError",
    "CycleDetectedError",
    "SnapshotError",
    # Algorithms
    "is_connected",
    "split_graph",
    "get_nodes_with_least_outgoing_edges",
    "top_sort_component",
    "top_sort",
]
