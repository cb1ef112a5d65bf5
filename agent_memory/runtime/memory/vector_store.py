"""
Vector Store - Keyed arena of memory entries

WHAT: In-memory keyed collection of VectorEntry records
WHERE: agent_memory/runtime/memory/vector_store.py - storage layer
WHO: Engine, search, consolidation and transfer components
TIME: put/get/delete O(1), iteration O(n)

Provides a minimal VectorStore interface with an in-memory implementation.
Every cross-reference between entries is an id resolved through this one
store; durable snapshotting is the persistence collaborator's job via the
engine's export/import hooks.

Boundary Notes:
- put() overwrites an existing id, never duplicates it
- Soft capacity may be exceeded between consolidation runs; the
  consolidation engine enforces the cap, not insert time
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol

from .errors import NotFoundError
from .models import VectorEntry

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Abstract interface for entry storage."""

    def put(self, entry: VectorEntry) -> bool:
        """Insert or overwrite by id; returns True when the id was new."""

    def get(self, entry_id: str) -> Optional[VectorEntry]:
        """Return the entry or None."""

    def delete(self, entry_id: str) -> bool:
        """Remove by id; returns True when something was removed."""

    def iter_entries(self) -> Iterator[VectorEntry]:
        """Iterate entries (order unspecified)."""

    def size(self) -> int:
        """Number of stored entries."""


@dataclass(slots=True)
class InMemoryVectorStore(VectorStore):
    """Dict-backed store keyed by entry id."""

    max_memory_size: int = 50_000
    _entries: Dict[str, VectorEntry] = field(default_factory=dict)

    # ------------------ writes ------------------
    def put(self, entry: VectorEntry) -> bool:
        is_new = entry.id not in self._entries
        self._entries[entry.id] = entry
        if is_new and len(self._entries) == self.max_memory_size + 1:
            logger.warning(
                f"Vector store exceeded soft capacity ({self.max_memory_size}); "
                "eviction deferred to consolidation"
            )
        return is_new

    def delete(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    # ------------------ reads -------------------
    def get(self, entry_id: str) -> Optional[VectorEntry]:
        return self._entries.get(entry_id)

    def require(self, entry_id: str) -> VectorEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFoundError("memory entry", entry_id)
        return entry

    def iter_entries(self) -> Iterator[VectorEntry]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._entries.values()))

    def entries(self, agent_id: Optional[str] = None) -> List[VectorEntry]:
        if agent_id is None:
            return list(self._entries.values())
        return [e for e in self._entries.values() if e.agent_id == agent_id]

    def size(self) -> int:
        return len(self._entries)

    def over_capacity(self) -> int:
        return max(0, len(self._entries) - self.max_memory_size)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries


__all__ = [
    "VectorStore",
    "InMemoryVectorStore",
]
