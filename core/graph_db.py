"""
TRACGRAPH GRAPH DATABASE - The Aggregate Owner

This file owns every node, edge and payload of a graph and is the only
place they are created or destroyed. It bridges integer business ids with
rustworkx's integer indices:
- O(1) node/edge lookup by id
- Adjacency (incoming/outgoing edges) kept by rustworkx, never duplicated
- Payload back-sets maintained on every attach/detach

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses ids issued by the graph's IdAllocator: 1, 2, 3, ...
  - Calls: graph.add_node({...}), graph.add_edge(1, 2)

  Bridge Layer (This File)
  - _node_map: Dict[int, int]  (node id -> rustworkx node index)
  - _edge_map: Dict[int, int]  (edge id -> rustworkx edge index)
  - _payloads: Dict[int, Payload]

  Rust Layer (rustworkx.PyDiGraph, multigraph)
  - Node weights are Node structs, edge weights are Edge structs
  - rustworkx indices are reused after removal, ids never are

An undirected graph stores every edge twice (once per direction) with a
shared payload, so every algorithm can treat the graph as directed.
"""
import logging
from copy import deepcopy
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union, TYPE_CHECKING

import msgspec
import polars as pl
import rustworkx as rx

from core.identity import IdAllocator
from core.ontology import (
    ElementKind,
    GraphType,
    WeightingType,
    parse_graph_type,
    parse_weighting_type,
)
from core.schemas import (
    Edge,
    EdgeRecord,
    ElementRef,
    GraphElement,
    GraphSnapshot,
    Node,
    NodeRecord,
    Payload,
    PayloadRecord,
    deserialize_snapshot,
    serialize_snapshot,
)
from infrastructure.logger import MutationLogger, get_logger as get_mutation_logger

if TYPE_CHECKING:
    from infrastructure.config import GraphConfig

logger = logging.getLogger(__name__)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NodeNotFoundError(GraphError):
    """Raised when a node id is not registered in the graph."""
    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Node with id '{node_id}' not found")


class LoopRejectedError(GraphError):
    """Raised when a self-edge is requested on a loop-forbidding graph."""
    def __init__(self, node_id: Optional[int] = None):
        self.node_id = node_id
        super().__init__("Loops are not allowed in this graph!")


class MultiEdgeRejectedError(GraphError):
    """Raised when a duplicate ordered edge is requested on a graph without multi-edges."""
    def __init__(self, start_id: int, end_id: int):
        self.start_id = start_id
        self.end_id = end_id
        super().__init__(
            f"Multi edges are not allowed in this graph! ({start_id} -> {end_id} exists)"
        )


class GraphInvariantError(GraphError):
    """Raised when a structural analysis cannot be completed."""
    pass


class CycleDetectedError(GraphInvariantError):
    """Raised when topological sequencing cannot make progress."""
    def __init__(self, message: str = "Loop detected."):
        super().__init__(message)


class SnapshotError(GraphError):
    """Raised when a snapshot cannot be imported."""
    pass


# =============================================================================
# GRAPH (The Aggregate)
# =============================================================================

class Graph:
    """
    In-memory graph backed by rustworkx.

    Usage:
        graph = Graph(GraphType.DIRECTED, allow_loops=False, allow_multi_edges=False)

        a = graph.add_node({"name": "build"})
        b = graph.add_node({"name": "compile"})
        graph.add_edge(a.id, b.id)          # a depends on b

        graph.get_elements_by_payload_property("name", "build")  # [a]
        text = graph.export_json()

    Thread Safety:
        NOT thread-safe. Use external locking if needed for concurrent access.
    """

    def __init__(
        self,
        graph_type: Union[GraphType, str] = GraphType.DIRECTED,
        allow_loops: bool = False,
        allow_multi_edges: bool = False,
        weighting_type: Union[WeightingType, str] = WeightingType.NONE,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        """
        Initialize an empty graph.

        Args:
            graph_type: DIRECTED or UNDIRECTED
            allow_loops: Permit edges whose start and end are the same node
            allow_multi_edges: Permit a second edge with the same (start, end)
            weighting_type: Declarative weighting tag, not used by algorithms
            mutation_logger: Event recorder. Defaults to the global logger.
        """
        self.graph_type = parse_graph_type(graph_type)
        self.allow_loops = bool(allow_loops)
        self.allow_multi_edges = bool(allow_multi_edges)
        self.weighting_type = parse_weighting_type(weighting_type)

        # Core storage: multigraph, the shape policy is enforced here instead
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True)

        # The Bridge: id -> rustworkx index, in registration order
        self._node_map: Dict[int, int] = {}
        self._edge_map: Dict[int, int] = {}
        self._payloads: Dict[int, Payload] = {}

        self._ids = IdAllocator()
        self._mutation_log = mutation_logger if mutation_logger is not None else get_mutation_logger()

    @classmethod
    def from_config(
        cls,
        config: "GraphConfig",
        mutation_logger: Optional[MutationLogger] = None,
    ) -> "Graph":
        """Build an empty graph from a GraphConfig."""
        return cls(
            graph_type=config.graph_type,
            allow_loops=config.allow_loops,
            allow_multi_edges=config.allow_multi_edges,
            weighting_type=config.weighting_type,
            mutation_logger=mutation_logger,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_directed(self) -> bool:
        return self.graph_type == GraphType.DIRECTED

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return len(self._node_map)

    @property
    def edge_count(self) -> int:
        """Number of edges in the graph (undirected edges count twice)."""
        return len(self._edge_map)

    @property
    def payload_count(self) -> int:
        """Number of payloads in the graph."""
        return len(self._payloads)

    @property
    def is_empty(self) -> bool:
        """True if graph has no nodes."""
        return self.node_count == 0

    @property
    def rx_graph(self) -> rx.PyDiGraph:
        """The underlying rustworkx graph. Read-only use: validators, metrics."""
        return self._graph

    @property
    def ids(self) -> IdAllocator:
        """The graph's id allocator (read it, don't drive it)."""
        return self._ids

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_node_by_id(self, node_id: int) -> Optional[Node]:
        """Return the node with this id, or None."""
        idx = self._node_map.get(node_id)
        if idx is None:
            return None
        return self._graph[idx]

    def get_edge_by_id(self, edge_id: int) -> Optional[Edge]:
        """Return the edge with this id, or None."""
        idx = self._edge_map.get(edge_id)
        if idx is None:
            return None
        return self._graph.get_edge_data_by_index(idx)

    def get_payload_by_id(self, payload_id: int) -> Optional[Payload]:
        """Return the payload with this id, or None."""
        return self._payloads.get(payload_id)

    def get_element(self, ref: ElementRef) -> Optional[GraphElement]:
        """Resolve an ElementRef to its node or edge."""
        if ref.kind == ElementKind.NODE:
            return self.get_node_by_id(ref.id)
        if ref.kind == ElementKind.EDGE:
            return self.get_edge_by_id(ref.id)
        return None

    def has_node(self, node_id: int) -> bool:
        return node_id in self._node_map

    def has_edge(self, edge_id: int) -> bool:
        return edge_id in self._edge_map

    def get_elements_by_payload_property(self, key: str, value: Any) -> List[GraphElement]:
        """
        Return nodes and edges whose payload has `key` set to exactly `value`.

        Results follow payload registration order, then attachment order
        within each payload. An element is listed once per matching payload.
        """
        results: List[GraphElement] = []
        for payload in self._payloads.values():
            if payload.matches(key, value):
                for ref in payload.elements:
                    element = self.get_element(ref)
                    if element is not None:
                        results.append(element)
        return results

    def iter_nodes(self) -> Iterator[Node]:
        """Iterate over all nodes in registration order."""
        for idx in self._node_map.values():
            yield self._graph[idx]

    def get_all_nodes(self) -> List[Node]:
        """Get all nodes in registration order."""
        return list(self.iter_nodes())

    def get_all_edges(self) -> List[Edge]:
        """Get all edges in registration order."""
        return [self._graph.get_edge_data_by_index(idx) for idx in self._edge_map.values()]

    def get_all_payloads(self) -> List[Payload]:
        """Get all payloads in registration order."""
        return list(self._payloads.values())

    # =========================================================================
    # ADJACENCY
    # =========================================================================

    def get_outgoing_edges(self, node_id: int) -> List[Edge]:
        """Edges whose start is this node, ordered by edge id."""
        idx = self._get_index(node_id)
        return sorted((data for _, _, data in self._graph.out_edges(idx)), key=lambda e: e.id)

    def get_incoming_edges(self, node_id: int) -> List[Edge]:
        """Edges whose end is this node, ordered by edge id."""
        idx = self._get_index(node_id)
        return sorted((data for _, _, data in self._graph.in_edges(idx)), key=lambda e: e.id)

    def get_successors(self, node_id: int) -> List[Node]:
        """End nodes of outgoing edges (one entry per edge)."""
        return [self.get_node_by_id(e.end) for e in self.get_outgoing_edges(node_id)]

    def get_predecessors(self, node_id: int) -> List[Node]:
        """Start nodes of incoming edges (one entry per edge)."""
        return [self.get_node_by_id(e.start) for e in self.get_incoming_edges(node_id)]

    def out_degree(self, node_id: int) -> int:
        return self._graph.out_degree(self._get_index(node_id))

    def in_degree(self, node_id: int) -> int:
        return self._graph.in_degree(self._get_index(node_id))

    def can_reach(self, node_id: int, target_id: int) -> bool:
        """True if one of the node's outgoing edges ends at target_id."""
        return any(e.end == target_id for e in self.get_outgoing_edges(node_id))

    def can_be_reached_by(self, node_id: int, source_id: int) -> bool:
        """True if one of the node's incoming edges starts at source_id."""
        return any(e.start == source_id for e in self.get_incoming_edges(node_id))

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_node(self, payload_data: Optional[Mapping[str, Any]] = None) -> Node:
        """
        Add a new node, optionally backed by a new payload.

        Args:
            payload_data: Property map for a new payload. An empty mapping
                          still creates a payload; None creates none.

        Returns:
            The new Node
        """
        payload = self._create_payload(payload_data) if payload_data is not None else None

        node = Node(
            id=self._ids.allocate(ElementKind.NODE),
            payload=payload.id if payload else None,
        )
        self._node_map[node.id] = self._graph.add_node(node)
        if payload:
            payload.add_element(node.ref)

        self._mutation_log.log_node_created(node.id, payload_id=node.payload)
        return node

    def remove_node(self, node_id: int) -> Optional[Node]:
        """
        Remove a node, every edge incident to it, and orphaned payloads.

        Unknown ids are a no-op.

        Returns:
            The removed Node, or None if the id was unknown
        """
        node = self.get_node_by_id(node_id)
        if node is None:
            return None

        self._detach_payload(node.ref, node.payload)

        idx = self._node_map[node_id]
        incident = [data.id for _, _, data in self._graph.out_edges(idx)]
        incident += [data.id for _, _, data in self._graph.in_edges(idx)]
        # Loops show up in both lists; remove_edge ignores the second visit
        for edge_id in incident:
            self.remove_edge(edge_id)

        self._graph.remove_node(idx)
        del self._node_map[node_id]

        self._mutation_log.log_node_deleted(node_id)
        return node

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edge(
        self,
        start_id: int,
        end_id: int,
        payload_data: Optional[Mapping[str, Any]] = None,
    ) -> Union[Edge, Tuple[Edge, Edge]]:
        """
        Add an edge from start_id to end_id.

        On an undirected graph a reverse edge sharing the same payload is
        created too; only the requested direction is validated.

        Returns:
            The new Edge (directed) or (forward, reverse) (undirected)

        Raises:
            LoopRejectedError: start_id == end_id and loops are forbidden
            NodeNotFoundError: start or end node doesn't exist
            MultiEdgeRejectedError: start already has an edge to end and
                                    multi-edges are forbidden
        """
        if not self.allow_loops and start_id == end_id:
            raise LoopRejectedError(start_id)

        if start_id not in self._node_map:
            raise NodeNotFoundError(start_id)
        if end_id not in self._node_map:
            raise NodeNotFoundError(end_id)

        if not self.allow_multi_edges and self.can_reach(start_id, end_id):
            raise MultiEdgeRejectedError(start_id, end_id)

        payload = self._create_payload(payload_data) if payload_data is not None else None

        edge = self._create_edge(start_id, end_id, payload)

        # Undirected graphs get a mirrored edge so algorithms stay direction-agnostic
        if self.graph_type == GraphType.UNDIRECTED:
            return_edge = self._create_edge(end_id, start_id, payload)
            return edge, return_edge

        return edge

    def remove_edge(self, edge_id: int) -> Optional[Edge]:
        """
        Remove an edge and its payload if that payload becomes orphaned.

        Unknown ids are a no-op. On undirected graphs only this direction
        is removed.

        Returns:
            The removed Edge, or None if the id was unknown
        """
        edge = self.get_edge_by_id(edge_id)
        if edge is None:
            return None

        self._detach_payload(edge.ref, edge.payload)

        self._graph.remove_edge_from_index(self._edge_map[edge_id])
        del self._edge_map[edge_id]

        self._mutation_log.log_edge_deleted(edge_id, edge.start, edge.end)
        return edge

    def _create_edge(self, start_id: int, end_id: int, payload: Optional[Payload]) -> Edge:
        """Create an edge, wire it into both endpoints and register it."""
        edge = Edge(
            id=self._ids.allocate(ElementKind.EDGE),
            start=start_id,
            end=end_id,
            payload=payload.id if payload else None,
        )
        self._edge_map[edge.id] = self._graph.add_edge(
            self._node_map[start_id], self._node_map[end_id], edge
        )
        if payload:
            payload.add_element(edge.ref)

        self._mutation_log.log_edge_created(edge.id, start_id, end_id, payload_id=edge.payload)
        return edge

    # =========================================================================
    # PAYLOAD LIFECYCLE
    # =========================================================================

    def _create_payload(self, payload_data: Mapping[str, Any]) -> Payload:
        payload = Payload(id=self._ids.allocate(ElementKind.PAYLOAD), data=deepcopy(dict(payload_data)))
        self._payloads[payload.id] = payload
        self._mutation_log.log_payload_created(payload.id)
        return payload

    def _detach_payload(self, ref: ElementRef, payload_id: Optional[int]) -> None:
        """Detach an element from its payload, pruning the payload if orphaned."""
        if payload_id is None:
            return
        payload = self._payloads.get(payload_id)
        if payload is None:
            return
        payload.remove_element(ref)
        if payload.is_orphaned:
            del self._payloads[payload_id]
            self._mutation_log.log_payload_pruned(payload_id)

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    def export_snapshot(self) -> GraphSnapshot:
        """Export the graph structure to its minimum needed data."""
        return GraphSnapshot(
            p=[PayloadRecord(i=p.id, d=deepcopy(p.data)) for p in self._payloads.values()],
            n=[NodeRecord(i=n.id, p=n.payload) for n in self.iter_nodes()],
            e=[EdgeRecord(i=e.id, s=e.start, e=e.end, p=e.payload) for e in self.get_all_edges()],
        )

    def export_json(self) -> str:
        """Export the graph into a JSON string."""
        return serialize_snapshot(self.export_snapshot())

    def import_snapshot(self, snapshot: GraphSnapshot) -> None:
        """
        Replace the whole graph with the contents of a snapshot.

        Entities keep their ids. Replay is payloads, then nodes, then edges.
        The new structure is built on the side and swapped in only when
        every reference resolves, so a failed import changes nothing.

        Raises:
            SnapshotError: duplicate ids or dangling node/payload references
        """
        graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True)
        node_map: Dict[int, int] = {}
        edge_map: Dict[int, int] = {}
        payloads: Dict[int, Payload] = {}

        for record in snapshot.p:
            if record.i in payloads:
                raise SnapshotError(f"Duplicate payload id in snapshot: {record.i}")
            payloads[record.i] = Payload(id=record.i, data=deepcopy(record.d))

        for record in snapshot.n:
            if record.i in node_map:
                raise SnapshotError(f"Duplicate node id in snapshot: {record.i}")
            payload = self._resolve_snapshot_payload(payloads, record.p, "node", record.i)
            node = Node(id=record.i, payload=record.p)
            node_map[node.id] = graph.add_node(node)
            if payload:
                payload.add_element(node.ref)

        for record in snapshot.e:
            if record.i in edge_map:
                raise SnapshotError(f"Duplicate edge id in snapshot: {record.i}")
            for endpoint in (record.s, record.e):
                if endpoint not in node_map:
                    raise SnapshotError(
                        f"Edge {record.i} references unknown node {endpoint}"
                    )
            payload = self._resolve_snapshot_payload(payloads, record.p, "edge", record.i)
            edge = Edge(id=record.i, start=record.s, end=record.e, payload=record.p)
            edge_map[edge.id] = graph.add_edge(node_map[record.s], node_map[record.e], edge)
            if payload:
                payload.add_element(edge.ref)

        orphaned = [pid for pid, payload in payloads.items() if payload.is_orphaned]
        if orphaned:
            logger.warning("Dropping %d orphaned payload(s) from snapshot: %s", len(orphaned), orphaned)
            for pid in orphaned:
                del payloads[pid]

        self._graph = graph
        self._node_map = node_map
        self._edge_map = edge_map
        self._payloads = payloads

        for node_id in node_map:
            self._ids.observe(ElementKind.NODE, node_id)
        for edge_id in edge_map:
            self._ids.observe(ElementKind.EDGE, edge_id)
        for payload_id in payloads:
            self._ids.observe(ElementKind.PAYLOAD, payload_id)

        self._mutation_log.log_graph_imported(len(node_map) + len(edge_map) + len(payloads))

    def import_json(self, text: Union[str, bytes]) -> None:
        """
        Import a graph from a JSON string produced by export_json().

        Raises:
            SnapshotError: malformed JSON, schema mismatch or dangling references
        """
        try:
            snapshot = deserialize_snapshot(text)
        except (msgspec.DecodeError, msgspec.ValidationError) as e:
            raise SnapshotError(f"Invalid snapshot: {e}") from e
        self.import_snapshot(snapshot)

    @staticmethod
    def _resolve_snapshot_payload(
        payloads: Dict[int, Payload],
        payload_id: Optional[int],
        kind: str,
        element_id: int,
    ) -> Optional[Payload]:
        if payload_id is None:
            return None
        payload = payloads.get(payload_id)
        if payload is None:
            raise SnapshotError(
                f"{kind.capitalize()} {element_id} references unknown payload {payload_id}"
            )
        return payload

    # =========================================================================
    # TABULAR VIEWS (Polars)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """
        Export nodes to a Polars DataFrame.

        Columns: id, payload_id, out_degree, in_degree
        """
        nodes = self.get_all_nodes()
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "payload_id": [n.payload for n in nodes],
                "out_degree": [self._graph.out_degree(self._node_map[n.id]) for n in nodes],
                "in_degree": [self._graph.in_degree(self._node_map[n.id]) for n in nodes],
            },
            schema={
                "id": pl.Int64,
                "payload_id": pl.Int64,
                "out_degree": pl.Int64,
                "in_degree": pl.Int64,
            },
        )

    def to_polars_edges(self) -> pl.DataFrame:
        """Export edges to a Polars DataFrame (columns: id, start, end, payload_id)."""
        edges = self.get_all_edges()
        return pl.DataFrame(
            {
                "id": [e.id for e in edges],
                "start": [e.start for e in edges],
                "end": [e.end for e in edges],
                "payload_id": [e.payload for e in edges],
            },
            schema={
                "id": pl.Int64,
                "start": pl.Int64,
                "end": pl.Int64,
                "payload_id": pl.Int64,
            },
        )

    def to_polars_payloads(self) -> pl.DataFrame:
        """
        Export payloads to a Polars DataFrame.

        Columns: id, element_count, keys (sorted property names)
        """
        payloads = self.get_all_payloads()
        return pl.DataFrame(
            {
                "id": [p.id for p in payloads],
                "element_count": [len(p.elements) for p in payloads],
                "keys": [sorted(p.data) for p in payloads],
            },
            schema={
                "id": pl.Int64,
                "element_count": pl.Int64,
                "keys": pl.List(pl.String),
            },
        )

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def _get_index(self, node_id: int) -> int:
        """Internal: get rustworkx index for a node id."""
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        return self._node_map[node_id]

    def __len__(self) -> int:
        """Return number of nodes."""
        return self.node_count

    def __contains__(self, node_id: int) -> bool:
        """Check if node exists."""
        return node_id in self._node_map

    def __repr__(self) -> str:
        return (
            f"Graph(type={self.graph_type.name}, nodes={self.node_count}, "
            f"edges={self.edge_count}, payloads={self.payload_count})"
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_empty_graph(**kwargs) -> Graph:
    """Create an empty Graph; keyword arguments go to Graph()."""
    return Graph(**kwargs)
