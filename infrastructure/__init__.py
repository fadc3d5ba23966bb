"""
TRACGRAPH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- logger: Mutation event logging (ring buffer, JSON-lines file log)
- config: TOML-backed engine configuration
"""

from infrastructure.logger import (
    LoggerConfig,
    MutationEvent,
    MutationLogger,
    MutationType,
    configure_logger,
    get_logger,
)

__all__ = [
    "LoggerConfig",
    "MutationEvent",
    "MutationLogger",
    "MutationType",
    "configure_logger",
    "get_logger",
]
