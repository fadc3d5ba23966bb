"""
Identity allocation for graph entities.

Each Graph owns one IdAllocator. Ids are positive integers, issued per
ElementKind from a monotonic watermark. Imported ids are adopted verbatim
and only ever raise the watermark, so a later allocation can never collide
with an id that was issued or imported before.
"""
from typing import Dict

from core.ontology import ElementKind


class IdAllocator:
    """Per-kind monotonic id counters."""

    def __init__(self):
        self._watermarks: Dict[ElementKind, int] = {kind: 0 for kind in ElementKind}

    def allocate(self, kind: ElementKind) -> int:
        """Issue the next id for a kind."""
        self._watermarks[kind] += 1
        return self._watermarks[kind]

    def observe(self, kind: ElementKind, value: int) -> None:
        """Record an externally supplied id (import replay)."""
        if value > self._watermarks[kind]:
            self._watermarks[kind] = value

    def peek(self, kind: ElementKind) -> int:
        """Highest id issued or observed so far for a kind (0 if none)."""
        return self._watermarks[kind]

    def __repr__(self) -> str:
        marks = ", ".join(f"{k.value}={v}" for k, v in self._watermarks.items())
        return f"IdAllocator({marks})"
