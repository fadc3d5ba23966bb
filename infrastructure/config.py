"""
TRACGRAPH CONFIG - Engine configuration from TOML

Configuration is loaded once from a TOML file with two sections:

    [graph]
    graph_type = "directed"          # or "undirected"
    allow_loops = false
    allow_multi_edges = false
    weighting_type = "none"          # none | node | edge | both

    [logging]
    enable_file_log = false
    log_path = "./.tracgraph/logs"
    buffer_size = 10000

Resolution order for the file: explicit path argument, then the
TRACGRAPH_CONFIG environment variable, then config/tracgraph.toml at the
project root. A missing file yields defaults.

Usage:
    from infrastructure.config import load_config
    from core.graph_db import Graph

    config = load_config()
    graph = Graph.from_config(config.graph)
"""
import os
import tomllib
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from core.ontology import GraphType, WeightingType, parse_graph_type, parse_weighting_type
from infrastructure.logger import LoggerConfig

CONFIG_ENV_VAR = "TRACGRAPH_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "tracgraph.toml"


# =============================================================================
# CONFIG OBJECTS
# =============================================================================

@dataclass
class GraphConfig:
    """Shape policy for a Graph."""
    graph_type: GraphType = GraphType.DIRECTED
    allow_loops: bool = False
    allow_multi_edges: bool = False
    weighting_type: WeightingType = WeightingType.NONE

    def __post_init__(self):
        self.graph_type = parse_graph_type(self.graph_type)
        self.weighting_type = parse_weighting_type(self.weighting_type)


@dataclass
class EngineConfig:
    """Complete engine configuration."""
    graph: GraphConfig = field(default_factory=GraphConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)


# =============================================================================
# LOADING
# =============================================================================

def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Pick the config file location (argument > env var > default)."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_toml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the raw TOML configuration.

    Returns:
        Dict with all configuration sections, empty if the file is missing.

    Raises:
        tomllib.TOMLDecodeError: If the file exists but is not valid TOML
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        warnings.warn(f"Config file not found at {config_path}, using defaults")
        return {}

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    """
    Build an EngineConfig from a parsed config mapping.

    Raises:
        ValueError: On unknown enum values
        TypeError: On unknown keys inside a section
    """
    graph_cfg = raw.get("graph", {})
    logging_cfg = raw.get("logging", {})

    return EngineConfig(
        graph=GraphConfig(**graph_cfg),
        logger=LoggerConfig(**logging_cfg),
    )


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load the engine configuration from TOML."""
    return config_from_dict(load_toml_config(path))
