"""
Memory Engine Errors - Exception taxonomy for the semantic memory engine

WHAT: Exception classes raised at the engine boundary
WHERE: agent_memory/runtime/memory/errors.py - shared by every engine module
WHO: Callers storing, looking up, and consolidating memories
TIME: n/a

Boundary Notes:
- "Nothing found" is never an error; searches and path queries return []
- ConcurrencyNoop never reaches callers; the scheduler turns it into a report
- InvariantViolation is self-healed by graph repair during normal passes
"""

from __future__ import annotations


class MemoryEngineError(RuntimeError):
    """Base class for all memory engine failures."""


class ValidationError(MemoryEngineError, ValueError):
    """Raised for structurally invalid input (missing ids, bad embedding size)."""


class NotFoundError(MemoryEngineError, KeyError):
    """Raised when an explicit lookup names an entity that does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} '{entity_id}' not found")
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self) -> str:
        return str(self.args[0])


class ConcurrencyNoop(MemoryEngineError):
    """Raised internally when consolidation is requested while one is running."""


class InvariantViolation(MemoryEngineError):
    """Raised by integrity checks when graph structure references missing nodes."""

    def __init__(self, message: str, *, edge_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.edge_ids = list(edge_ids or [])


__all__ = [
    "MemoryEngineError",
    "ValidationError",
    "NotFoundError",
    "ConcurrencyNoop",
    "InvariantViolation",
]
