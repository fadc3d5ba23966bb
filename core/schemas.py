"""
TRACGRAPH SCHEMAS - The Grammar of the Graph

If ontology.py is the Dictionary (the words we can use),
schemas.py is the Grammar (how entities and snapshots are structured).

This module defines:
- ElementRef: a (kind, id) handle for a node or edge
- Payload: the shared, mutable property bag attached to nodes/edges
- Node / Edge: the structural entities stored in the rustworkx graph
- Snapshot records: the compact export/import format
- Serialization helpers for the snapshot (JSON and msgpack)

Design Principles:
1. IDS, NOT POINTERS: entities reference each other by integer id only.
   The owning Graph resolves ids, so there are no reference cycles.
2. KW_ONLY: enforce keyword arguments to prevent positional mix-ups
   between the many integer fields.
3. COMPACT SNAPSHOTS: single-letter keys, optional payload ids omitted.
"""
import msgspec
from typing import Any, Dict, List, Optional, Union

from core.ontology import ElementKind


_MISSING = object()


# =============================================================================
# ELEMENT REFERENCES
# =============================================================================

class ElementRef(msgspec.Struct, frozen=True):
    """Hashable handle for a node or edge inside one graph."""
    kind: ElementKind
    id: int


# =============================================================================
# PAYLOAD (Shared Property Bag)
# =============================================================================

class Payload(msgspec.Struct, kw_only=True):
    """
    A property bag that may back several nodes and/or edges.

    `elements` is the back-set of elements currently attached. It has
    unique membership and keeps attachment order. A payload whose
    back-set becomes empty is orphaned and gets pruned by the Graph.
    """
    id: int
    data: Dict[str, Any] = msgspec.field(default_factory=dict)
    elements: List[ElementRef] = msgspec.field(default_factory=list)

    def get_property(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default."""
        return self.data.get(key, default)

    def set_property(self, key: str, value: Any) -> None:
        """Store a value under key."""
        self.data[key] = value

    def has_property(self, key: str) -> bool:
        return key in self.data

    def matches(self, key: str, value: Any) -> bool:
        """
        Exact-match test for a property.

        The key must be present and the value equal. Booleans never match
        numbers (True != 1 here).
        """
        current = self.data.get(key, _MISSING)
        if current is _MISSING:
            return False
        if isinstance(current, bool) != isinstance(value, bool):
            return False
        return current == value

    def add_element(self, ref: ElementRef) -> None:
        """Attach an element if it is not attached already."""
        if ref not in self.elements:
            self.elements.append(ref)

    def remove_element(self, ref: ElementRef) -> None:
        """Detach an element if it is attached."""
        if ref in self.elements:
            self.elements.remove(ref)

    @property
    def is_orphaned(self) -> bool:
        """True when no element references this payload."""
        return len(self.elements) == 0


# =============================================================================
# STRUCTURAL ENTITIES
# =============================================================================

class Node(msgspec.Struct, kw_only=True):
    """
    A graph node.

    Stored directly in rx.PyDiGraph.add_node(). Adjacency is owned by the
    rustworkx graph and exposed through the Graph API.
    """
    id: int
    payload: Optional[int] = None  # Payload id

    @property
    def ref(self) -> ElementRef:
        return ElementRef(ElementKind.NODE, self.id)


class Edge(msgspec.Struct, kw_only=True):
    """A directed edge from `start` to `end` (node ids)."""
    id: int
    start: int
    end: int
    payload: Optional[int] = None  # Payload id

    @property
    def ref(self) -> ElementRef:
        return ElementRef(ElementKind.EDGE, self.id)

    @property
    def is_loop(self) -> bool:
        return self.start == self.end


GraphElement = Union[Node, Edge]


# =============================================================================
# SNAPSHOT RECORDS (Export / Import Format)
# =============================================================================

class PayloadRecord(msgspec.Struct):
    """{i: payload id, d: property map}"""
    i: int
    d: Dict[str, Any] = msgspec.field(default_factory=dict)


class NodeRecord(msgspec.Struct, omit_defaults=True):
    """{i: node id, p?: payload id}"""
    i: int
    p: Optional[int] = None


class EdgeRecord(msgspec.Struct, omit_defaults=True):
    """{i: edge id, s: start node id, e: end node id, p?: payload id}"""
    i: int
    s: int
    e: int
    p: Optional[int] = None


class GraphSnapshot(msgspec.Struct):
    """
    Structural snapshot of a graph.

    Field order is load-bearing on import: payloads first, then nodes
    (which reference payloads), then edges (which reference both).
    Payload back-references are not serialized; they are rebuilt.
    """
    p: List[PayloadRecord] = msgspec.field(default_factory=list)
    n: List[NodeRecord] = msgspec.field(default_factory=list)
    e: List[EdgeRecord] = msgspec.field(default_factory=list)


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoders/decoders, reused across the application
_snapshot_encoder = msgspec.json.Encoder()
_snapshot_decoder = msgspec.json.Decoder(type=GraphSnapshot)

_msgpack_encoder = msgspec.msgpack.Encoder()
_msgpack_snapshot_decoder = msgspec.msgpack.Decoder(type=GraphSnapshot)


def serialize_snapshot(snapshot: GraphSnapshot) -> str:
    """Serialize a snapshot to a JSON string."""
    return _snapshot_encoder.encode(snapshot).decode("utf-8")


def deserialize_snapshot(data: Union[str, bytes]) -> GraphSnapshot:
    """
    Deserialize a JSON string/bytes to a GraphSnapshot.

    Raises:
        msgspec.DecodeError: malformed JSON
        msgspec.ValidationError: JSON does not match the snapshot schema
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return _snapshot_decoder.decode(data)


def serialize_snapshot_msgpack(snapshot: GraphSnapshot) -> bytes:
    """Serialize a snapshot to msgpack bytes (more compact than JSON)."""
    return _msgpack_encoder.encode(snapshot)


def deserialize_snapshot_msgpack(data: bytes) -> GraphSnapshot:
    """Deserialize msgpack bytes to a GraphSnapshot."""
    return _msgpack_snapshot_decoder.decode(data)
