"""
TRACGRAPH MUTATION LOGGER - The Flight Recorder

Records every structural mutation of a Graph as a typed event, so a
sequence of edits can be inspected or replayed after the fact.

Architecture:
- MutationEvent: msgspec struct describing one mutation
- EventBuffer: in-memory ring buffer for recent events
- FileLogger: optional newline-delimited JSON log, one file per UTC day
- MutationLogger: the interface the Graph talks to

Usage:
    logger = MutationLogger()
    graph = Graph(mutation_logger=logger)
    node = graph.add_node({"name": "a"})

    for event in logger.get_recent_events(10):
        print(f"{event.sequence}: {event.mutation_type}")
"""
import msgspec
import logging
from typing import Optional, List, Any, Callable
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from collections import deque
import threading
import io

log = logging.getLogger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================

class MutationType(str, Enum):
    """Types of graph mutations for event tracking."""
    NODE_CREATED = "NODE_CREATED"
    NODE_DELETED = "NODE_DELETED"
    EDGE_CREATED = "EDGE_CREATED"
    EDGE_DELETED = "EDGE_DELETED"
    PAYLOAD_CREATED = "PAYLOAD_CREATED"
    PAYLOAD_PRUNED = "PAYLOAD_PRUNED"
    GRAPH_IMPORTED = "GRAPH_IMPORTED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """Individual mutation event."""
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    node_id: Optional[int] = None
    edge_id: Optional[int] = None
    payload_id: Optional[int] = None

    # Endpoints for edge events
    source_id: Optional[int] = None
    target_id: Optional[int] = None

    # Entity count for bulk events (imports)
    count: int = 0


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Configuration for the mutation logger."""
    enable_file_log: bool = False       # Enable file-based logging
    log_path: Optional[Path] = None     # Directory for log files
    buffer_size: int = 10000            # In-memory buffer size

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./.tracgraph/logs")
        else:
            self.log_path = Path(self.log_path)


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Bounded history of mutation events, oldest first.

    Sequence numbers are issued here, so the buffer is always ordered by
    sequence and `after()` can serve as a replay cursor. Once `capacity`
    is reached the oldest events fall off.
    """

    def __init__(self, capacity: int = 10000):
        self._events: deque[MutationEvent] = deque(maxlen=capacity)
        self._lock = threading.RLock()
        self._last_sequence = 0

    def issue_sequence(self) -> int:
        with self._lock:
            self._last_sequence += 1
            return self._last_sequence

    def record(self, event: MutationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def _select(self, predicate: Callable[[MutationEvent], bool]) -> List[MutationEvent]:
        with self._lock:
            return [e for e in self._events if predicate(e)]

    def latest(self, n: int) -> List[MutationEvent]:
        """The n most recent events (fewer if the buffer holds fewer)."""
        with self._lock:
            if n <= 0:
                return []
            return list(self._events)[-n:]

    def after(self, sequence: int) -> List[MutationEvent]:
        """Events with a sequence number greater than `sequence`."""
        return self._select(lambda e: e.sequence > sequence)

    def since(self, timestamp: str) -> List[MutationEvent]:
        return self._select(lambda e: e.timestamp >= timestamp)

    def of_type(self, mutation_type: str) -> List[MutationEvent]:
        return self._select(lambda e: e.mutation_type == mutation_type)

    def for_node(self, node_id: int) -> List[MutationEvent]:
        """Node events plus edge events where the node is an endpoint."""
        return self._select(
            lambda e: node_id in (e.node_id, e.source_id, e.target_id)
        )

    def for_edge(self, edge_id: int) -> List[MutationEvent]:
        return self._select(lambda e: e.edge_id == edge_id)

    def for_payload(self, payload_id: int) -> List[MutationEvent]:
        """Creation/pruning of the payload and every element created with it."""
        return self._select(lambda e: e.payload_id == payload_id)

    def clear(self) -> None:
        """Drop all events. Sequence numbers keep counting."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)



# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    File-based event logger.

    Writes events as newline-delimited JSON for easy parsing.
    Rotates logs daily.
    """

    def __init__(self, log_path: Path):
        self._log_path = log_path
        self._current_file: Optional[io.TextIOWrapper] = None
        self._current_date: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

        log_path.mkdir(parents=True, exist_ok=True)

    def write(self, event: MutationEvent) -> None:
        """Write an event to the log file."""
        with self._lock:
            self._ensure_file()
            line = self._encoder.encode(event).decode("utf-8") + "\n"
            self._current_file.write(line)
            self._current_file.flush()

    def _ensure_file(self) -> None:
        """Ensure we have a valid file handle for today."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        if self._current_date != today:
            if self._current_file:
                self._current_file.close()

            filepath = self._log_path / f"mutations_{today}.jsonl"
            self._current_file = open(filepath, "a", encoding="utf-8")
            self._current_date = today

    def close(self) -> None:
        """Close the file handle."""
        with self._lock:
            if self._current_file:
                self._current_file.close()
                self._current_file = None
                self._current_date = None

    def read_log(self, date: str) -> List[MutationEvent]:
        """Read events from a specific date's log (YYYY-MM-DD)."""
        filepath = self._log_path / f"mutations_{date}.jsonl"

        if not filepath.exists():
            return []

        events = []
        decoder = msgspec.json.Decoder(type=MutationEvent)

        with open(filepath, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(decoder.decode(line.encode("utf-8")))
                except msgspec.DecodeError as e:
                    log.warning("Skipping unreadable event at %s:%d: %s", filepath, line_no, e)

        return events


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for graph mutations.

    Events go to:
    - In-memory buffer (always)
    - File-based logs (configurable)
    - Subscribers registered with subscribe()

    Usage:
        logger = MutationLogger()
        logger.log_node_created(1, payload_id=None)
        events = logger.get_events_for_node(1)
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()

        self._buffer = EventBuffer(self.config.buffer_size)
        self._file_logger: Optional[FileLogger] = None

        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(self.config.log_path)

        self._subscribers: List[Callable[[MutationEvent], None]] = []

    def _now(self) -> str:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc).isoformat()

    def _emit(self, mutation_type: MutationType, **fields: Any) -> MutationEvent:
        """Build an event and send it to all destinations."""
        event = MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.issue_sequence(),
            mutation_type=mutation_type.value,
            **fields,
        )

        self._buffer.record(event)

        if self._file_logger:
            self._file_logger.write(event)

        for subscriber in self._subscribers:
            subscriber(event)

        log.debug("mutation #%d %s %s", event.sequence, event.mutation_type, fields)
        return event

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_created(self, node_id: int, payload_id: Optional[int] = None) -> MutationEvent:
        """Log a node creation event."""
        return self._emit(MutationType.NODE_CREATED, node_id=node_id, payload_id=payload_id)

    def log_node_deleted(self, node_id: int) -> MutationEvent:
        """Log a node deletion event."""
        return self._emit(MutationType.NODE_DELETED, node_id=node_id)

    def log_edge_created(
        self,
        edge_id: int,
        source_id: int,
        target_id: int,
        payload_id: Optional[int] = None,
    ) -> MutationEvent:
        """Log an edge creation event."""
        return self._emit(
            MutationType.EDGE_CREATED,
            edge_id=edge_id,
            source_id=source_id,
            target_id=target_id,
            payload_id=payload_id,
        )

    def log_edge_deleted(self, edge_id: int, source_id: int, target_id: int) -> MutationEvent:
        """Log an edge deletion event."""
        return self._emit(
            MutationType.EDGE_DELETED,
            edge_id=edge_id,
            source_id=source_id,
            target_id=target_id,
        )

    def log_payload_created(self, payload_id: int) -> MutationEvent:
        return self._emit(MutationType.PAYLOAD_CREATED, payload_id=payload_id)

    def log_payload_pruned(self, payload_id: int) -> MutationEvent:
        """Log removal of an orphaned payload."""
        return self._emit(MutationType.PAYLOAD_PRUNED, payload_id=payload_id)

    def log_graph_imported(self, count: int) -> MutationEvent:
        """Log a snapshot import; count is the number of replayed entities."""
        return self._emit(MutationType.GRAPH_IMPORTED, count=count)

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._buffer.latest(n)

    def get_events_since(self, timestamp: str) -> List[MutationEvent]:
        """Get all events since a timestamp."""
        return self._buffer.since(timestamp)

    def get_events_for_node(self, node_id: int) -> List[MutationEvent]:
        """Get all events for a specific node."""
        return self._buffer.for_node(node_id)

    def get_events_for_edge(self, edge_id: int) -> List[MutationEvent]:
        return self._buffer.for_edge(edge_id)

    def get_events_for_payload(self, payload_id: int) -> List[MutationEvent]:
        """Get all events that reference a payload."""
        return self._buffer.for_payload(payload_id)

    def get_events_after(self, sequence: int) -> List[MutationEvent]:
        """Get events recorded after a sequence number (replay cursor)."""
        return self._buffer.after(sequence)

    def get_events_by_type(self, mutation_type: str) -> List[MutationEvent]:
        """Get all events of a specific type."""
        if isinstance(mutation_type, MutationType):
            mutation_type = mutation_type.value
        return self._buffer.of_type(mutation_type)

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Subscribe to mutation events."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Unsubscribe from mutation events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Close all resources."""
        if self._file_logger:
            self._file_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

# Global logger instance
_global_logger: Optional[MutationLogger] = None


def get_logger() -> MutationLogger:
    """Get or create the global logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = MutationLogger()
    return _global_logger


def configure_logger(config: LoggerConfig) -> MutationLogger:
    """Configure and return a new global logger."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = MutationLogger(config)
    return _global_logger


def reset_logger() -> None:
    """Drop the global logger (closing its resources)."""
    global _global_logger
    if _global_logger:
        _global_logger.close()
    _global_logger = None
