"""
Pytest configuration and shared fixtures for the tracgraph test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset the global mutation logger before each test to ensure isolation."""
    from infrastructure.logger import reset_logger

    reset_logger()

    yield

    reset_logger()


@pytest.fixture
def mutation_logger():
    """Provide a private MutationLogger (no file output)."""
    from infrastructure.logger import MutationLogger, LoggerConfig
    return MutationLogger(LoggerConfig(enable_file_log=False))


@pytest.fixture
def fresh_graph(mutation_logger):
    """Provide an empty directed Graph (no loops, no multi-edges)."""
    from core.graph_db import Graph
    return Graph(mutation_logger=mutation_logger)


@pytest.fixture
def undirected_graph(mutation_logger):
    """Provide an empty undirected Graph."""
    from core.graph_db import Graph
    from core.ontology import GraphType
    return Graph(GraphType.UNDIRECTED, mutation_logger=mutation_logger)


@pytest.fixture
def permissive_graph(mutation_logger):
    """Provide an empty directed Graph that allows loops and multi-edges."""
    from core.graph_db import Graph
    return Graph(allow_loops=True, allow_multi_edges=True, mutation_logger=mutation_logger)


@pytest.fixture
def sample_graph(fresh_graph):
    """
    Provide the reference dependency graph (ids 1..10).

        1 -> 2 -> 3 -> 4
             |        ^
             v        5
             8      ^   ^
                    6   7

        10 -> 9
    """
    for _ in range(10):
        fresh_graph.add_node()

    for start, end in [(1, 2), (2, 3), (3, 4), (5, 4), (6, 5), (7, 5), (2, 8), (10, 9)]:
        fresh_graph.add_edge(start, end)

    return fresh_graph
