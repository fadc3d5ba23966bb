"""
TRACGRAPH ONTOLOGY - The Vocabulary of the Graph

This module defines the enums every other module speaks in:
- GraphType: directed vs. undirected edge semantics
- WeightingType: where weighting information lives (declarative only)
- ElementKind: the entity kinds that carry their own id namespace

An undirected graph is stored as a directed one where every edge has a
reverse partner sharing the same payload. Algorithms never need to special
case the undirected flavour.
"""
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class GraphType(str, Enum):
    """Edge semantics of a graph."""
    UNDIRECTED = "graph.undirected"
    DIRECTED = "graph.directed"


class WeightingType(str, Enum):
    """
    Where weighting information is stored.

    NONE: no weighting defined. Algorithms that require a weighting
          should abort upon start.
    NODE: the weighting information is in the payload of the nodes.
    EDGE: the weighting information is in the payload of the edges.
    BOTH: the weighting information is in the payload of nodes and edges.
    """
    NONE = "weighting.none"
    NODE = "weighting.node"
    EDGE = "weighting.edge"
    BOTH = "weighting.both"


class ElementKind(str, Enum):
    """Entity kinds. Each kind has an independent id namespace."""
    NODE = "node"
    EDGE = "edge"
    PAYLOAD = "payload"


def parse_graph_type(value) -> GraphType:
    """Accept a GraphType, its value, or its name (case-insensitive)."""
    return _parse_enum(GraphType, value)


def parse_weighting_type(value) -> WeightingType:
    """Accept a WeightingType, its value, or its name (case-insensitive)."""
    return _parse_enum(WeightingType, value)


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value == member.value or value.upper() == member.name:
                return member
    raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}")
