"""
TRACGRAPH GRAPH INVARIANTS - Structural Consistency Checks

The Graph keeps its invariants on every mutation. This module re-checks
them from the outside, for tests and for diagnosing snapshots.

Invariants Implemented:
1. Handshaking Lemma: sum(in_degree) == sum(out_degree) == |E|
2. Referential Integrity: edge endpoints and payload ids are registered
3. Payload Membership: back-sets match the referencing elements, no orphans
4. Shape Policy: no loops / multi-edges where the graph forbids them
5. Undirected Symmetry: every edge has a reverse partner sharing its payload

Cycles are NOT a violation: they are valid graph data. Acyclicity is
reported as a metric only.
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

import rustworkx as rx

from core.graph_db import Graph, GraphInvariantError
from core.ontology import GraphType
from core.schemas import ElementRef


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # Graph state is corrupt
    WARNING = "warning"  # Should be investigated
    INFO = "info"        # For metrics/diagnostics


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str
    severity: InvariantSeverity
    message: str
    nodes_involved: List[int] = field(default_factory=list)
    edges_involved: List[int] = field(default_factory=list)


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]


ValidationResult = Tuple[bool, Optional[InvariantViolation]]


# =============================================================================
# GRAPH INVARIANTS
# =============================================================================

class GraphInvariants:
    """
    Invariant validators for a Graph.

    All methods are static, read-only, and return (is_valid, violation).
    """

    @staticmethod
    def validate_handshaking_lemma(graph: Graph) -> ValidationResult:
        """
        Handshaking Lemma: sum(in_degree) == sum(out_degree) == |E|

        Catches adjacency that drifted away from the edge collection.
        """
        rx_graph = graph.rx_graph
        node_indices = list(rx_graph.node_indices())

        total_in = sum(rx_graph.in_degree(idx) for idx in node_indices)
        total_out = sum(rx_graph.out_degree(idx) for idx in node_indices)

        if total_in != total_out:
            return False, InvariantViolation(
                invariant="handshaking_lemma",
                severity=InvariantSeverity.ERROR,
                message=f"sum(in_degree)={total_in} != sum(out_degree)={total_out}",
            )

        if total_in != graph.edge_count:
            return False, InvariantViolation(
                invariant="handshaking_lemma",
                severity=InvariantSeverity.ERROR,
                message=f"sum(degrees)={total_in} != |E|={graph.edge_count}",
            )

        return True, None

    @staticmethod
    def validate_referential_integrity(graph: Graph) -> ValidationResult:
        """Every edge endpoint and every element's payload must be registered."""
        bad_nodes: List[int] = []
        bad_edges: List[int] = []

        for node in graph.iter_nodes():
            if node.payload is not None and graph.get_payload_by_id(node.payload) is None:
                bad_nodes.append(node.id)

        for edge in graph.get_all_edges():
            if edge.start not in graph or edge.end not in graph:
                bad_edges.append(edge.id)
            elif edge.payload is not None and graph.get_payload_by_id(edge.payload) is None:
                bad_edges.append(edge.id)

        if bad_nodes or bad_edges:
            return False, InvariantViolation(
                invariant="referential_integrity",
                severity=InvariantSeverity.ERROR,
                message=(
                    f"{len(bad_nodes)} node(s) and {len(bad_edges)} edge(s) "
                    f"reference unregistered entities"
                ),
                nodes_involved=bad_nodes,
                edges_involved=bad_edges,
            )
        return True, None

    @staticmethod
    def validate_payload_membership(graph: Graph) -> ValidationResult:
        """
        Each payload's back-set must equal the set of registered elements
        that reference it, and no payload may be orphaned.
        """
        expected: Dict[int, Set[ElementRef]] = defaultdict(set)
        for node in graph.iter_nodes():
            if node.payload is not None:
                expected[node.payload].add(node.ref)
        for edge in graph.get_all_edges():
            if edge.payload is not None:
                expected[edge.payload].add(edge.ref)

        mismatched: List[int] = []
        for payload in graph.get_all_payloads():
            actual = set(payload.elements)
            if payload.is_orphaned or actual != expected.get(payload.id, set()):
                mismatched.append(payload.id)

        if mismatched:
            return False, InvariantViolation(
                invariant="payload_membership",
                severity=InvariantSeverity.ERROR,
                message=f"Payload back-sets out of sync or orphaned: {mismatched}",
            )
        return True, None

    @staticmethod
    def validate_shape_policy(graph: Graph) -> ValidationResult:
        """No loops / duplicate ordered pairs where the graph forbids them."""
        offending: List[int] = []
        pair_counts: Counter = Counter()

        for edge in graph.get_all_edges():
            if edge.is_loop and not graph.allow_loops:
                offending.append(edge.id)
            pair_counts[(edge.start, edge.end)] += 1

        if not graph.allow_multi_edges:
            # An undirected loop is stored as two identical (a, a) edges
            loop_limit = 2 if graph.graph_type == GraphType.UNDIRECTED else 1
            duplicated = {
                pair for pair, count in pair_counts.items()
                if count > (loop_limit if pair[0] == pair[1] else 1)
            }
            offending += [e.id for e in graph.get_all_edges() if (e.start, e.end) in duplicated]

        if offending:
            return False, InvariantViolation(
                invariant="shape_policy",
                severity=InvariantSeverity.WARNING,
                message=f"{len(offending)} edge(s) violate the loop/multi-edge policy",
                edges_involved=sorted(set(offending)),
            )
        return True, None

    @staticmethod
    def validate_undirected_symmetry(graph: Graph) -> ValidationResult:
        """
        On undirected graphs every edge a->b needs a partner b->a with the
        same payload. Directed graphs pass trivially.
        """
        if graph.graph_type != GraphType.UNDIRECTED:
            return True, None

        reverse_pool: Counter = Counter(
            (e.end, e.start, e.payload) for e in graph.get_all_edges()
        )
        unpaired = [
            e.id for e in graph.get_all_edges()
            if reverse_pool[(e.start, e.end, e.payload)] == 0
        ]

        if unpaired:
            return False, InvariantViolation(
                invariant="undirected_symmetry",
                severity=InvariantSeverity.WARNING,
                message=f"{len(unpaired)} edge(s) have no reverse partner",
                edges_involved=unpaired,
            )
        return True, None

    @staticmethod
    def validate_all(graph: Graph, raise_on_error: bool = False) -> InvariantReport:
        """
        Run all invariant validations and return a comprehensive report.

        Args:
            graph: The Graph to validate
            raise_on_error: If True, raise GraphInvariantError on first ERROR
        """
        checks = (
            GraphInvariants.validate_handshaking_lemma,
            GraphInvariants.validate_referential_integrity,
            GraphInvariants.validate_payload_membership,
            GraphInvariants.validate_shape_policy,
            GraphInvariants.validate_undirected_symmetry,
        )

        violations: List[InvariantViolation] = []
        for check in checks:
            _, violation = check(graph)
            if violation:
                violations.append(violation)
                if raise_on_error and violation.severity == InvariantSeverity.ERROR:
                    raise GraphInvariantError(violation.message)

        is_valid = all(v.severity != InvariantSeverity.ERROR for v in violations)
        return InvariantReport(valid=is_valid, violations=violations, metrics=get_graph_metrics(graph))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_graph(graph: Graph, **kwargs) -> InvariantReport:
    """Convenience function to validate a graph."""
    return GraphInvariants.validate_all(graph, **kwargs)


def get_graph_metrics(graph: Graph) -> Dict[str, Any]:
    """Basic size and shape metrics."""
    rx_graph = graph.rx_graph
    return {
        "node_count": graph.node_count,
        "edge_count": graph.edge_count,
        "payload_count": graph.payload_count,
        "weakly_connected_components": (
            rx.number_weakly_connected_components(rx_graph) if graph.node_count else 0
        ),
        "is_acyclic": rx.is_directed_acyclic_graph(rx_graph),
        "sink_count": sum(1 for idx in rx_graph.node_indices() if rx_graph.out_degree(idx) == 0),
        "loop_count": sum(1 for e in graph.get_all_edges() if e.is_loop),
    }
