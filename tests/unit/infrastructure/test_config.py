"""
Unit tests for infrastructure/config.py

Tests TOML loading, path resolution and policy parsing.
"""
import pytest

from core.graph_db import Graph
from core.ontology import GraphType, WeightingType
from infrastructure.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    EngineConfig,
    GraphConfig,
    config_from_dict,
    load_config,
    load_toml_config,
    resolve_config_path,
)


CUSTOM_TOML = """
[graph]
graph_type = "undirected"
allow_loops = true
allow_multi_edges = false
weighting_type = "edge"

[logging]
enable_file_log = false
buffer_size = 50
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "engine.toml"
    path.write_text(CUSTOM_TOML)
    return path


# =============================================================================
# PATH RESOLUTION TESTS
# =============================================================================

def test_resolve_prefers_argument(monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.toml"))

    assert resolve_config_path(tmp_path / "arg.toml") == tmp_path / "arg.toml"


def test_resolve_uses_env_var(monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.toml"))

    assert resolve_config_path() == tmp_path / "env.toml"


def test_resolve_default(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    assert resolve_config_path() == DEFAULT_CONFIG_PATH


# =============================================================================
# LOADING TESTS
# =============================================================================

def test_load_config_from_file(config_file):
    """
    Validate that a TOML file populates both sections.

    Verifies:
    - Graph policy is parsed into enums
    - Logger settings are applied, missing keys keep defaults
    """
    config = load_config(config_file)

    assert config.graph.graph_type == GraphType.UNDIRECTED
    assert config.graph.allow_loops is True
    assert config.graph.weighting_type == WeightingType.EDGE
    assert config.logger.buffer_size == 50
    assert config.logger.log_path.name == "logs"


def test_load_config_from_env(monkeypatch, config_file):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))

    assert load_config().graph.graph_type == GraphType.UNDIRECTED


def test_missing_file_yields_defaults(tmp_path):
    with pytest.warns(UserWarning, match="Config file not found"):
        config = load_config(tmp_path / "absent.toml")

    assert config == EngineConfig()


def test_shipped_default_config_matches_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    config = load_config()

    assert config.graph == GraphConfig()
    assert config.logger.enable_file_log is False


def test_invalid_toml_raises(tmp_path):
    import tomllib

    path = tmp_path / "broken.toml"
    path.write_text("[graph\n")

    with pytest.raises(tomllib.TOMLDecodeError):
        load_toml_config(path)


def test_unknown_enum_value_rejected():
    with pytest.raises(ValueError):
        config_from_dict({"graph": {"graph_type": "sideways"}})


def test_unknown_key_rejected():
    with pytest.raises(TypeError):
        config_from_dict({"graph": {"colour": "blue"}})


def test_graph_from_loaded_config(config_file, mutation_logger):
    graph = Graph.from_config(load_config(config_file).graph, mutation_logger=mutation_logger)
    node = graph.add_node()

    graph.add_edge(node.id, node.id)

    assert graph.edge_count == 2
