"""
Memory Models - Type-safe data structures for the semantic memory engine

WHAT: Pydantic models for incoming memories, vector entries, graph records
WHERE: agent_memory/runtime/memory/models.py - data layer
WHO: Engine components creating/validating memory instances
TIME: Model validation <1ms

All cross-references (relationships, cluster members, community members, edge
endpoints) are plain id strings resolved through the owning store, so no
object cycles can form between entries, patterns, clusters and the graph.

Models include:
- Timestamp handling (timezone-aware UTC)
- Embedding vectors (fixed dimension, checked by the engine)
- Plain-dict records for the persistence collaborator

Boundary Notes:
- Bounds on importance/relevance enforced at construction
- Search results hold the live stored entry (access bookkeeping path)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .content import MemoryContent, RawContent, coerce_content

InputMemoryType = Literal["task", "decision", "insight", "error", "feedback"]
EntryType = Literal["experience", "knowledge", "decision", "skill", "pattern"]
NodeType = Literal["concept", "agent", "task", "skill", "decision"]
EdgeType = Literal["related_to", "learned_from", "depends_on", "improves", "conflicts_with"]

SYSTEM_AGENT_ID = "system"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_timestamp_key(prefix: str) -> str:
    """Generate timestamp-based key with UUID suffix."""
    ts = utcnow().strftime("%Y%m%dT%H%M%S%f")
    suffix = uuid.uuid4().hex[:8]
    return f"{prefix}-{ts}-{suffix}"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC wall-clock time."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_now(now: Optional[datetime] = None) -> datetime:
    return utcnow() if now is None else as_utc(now)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _dedupe(tags: List[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for tag in tags:
        if tag and tag not in seen:
            seen[tag] = None
    return list(seen)


def categorize_memory_type(memory_type: str, tags: List[str]) -> EntryType:
    """Map an incoming memory type (plus tags) onto the stored entry type."""
    if memory_type == "decision":
        return "decision"
    if memory_type == "task":
        return "experience"
    if "skill" in tags or "capability" in tags:
        return "skill"
    if "pattern" in tags or "strategy" in tags:
        return "pattern"
    return "knowledge"


def node_type_for(entry_type: str) -> NodeType:
    if entry_type == "experience":
        return "task"
    if entry_type == "skill":
        return "skill"
    if entry_type == "decision":
        return "decision"
    return "concept"


class MemoryEntry(BaseModel):
    """
    Memory as submitted by a calling agent.

    Examples:
    - type="task", content={"description": "Deployed staging build"}
    - type="insight", content="Retries hide flaky network timeouts"
    """

    id: str = Field(min_length=1)
    type: InputMemoryType = "insight"
    content: Any = None
    tags: List[str] = Field(default_factory=list)
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utcnow)
    agent_id: str = ""
    project_id: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: List[str]) -> List[str]:
        return _dedupe(value)

    def typed_content(self) -> MemoryContent:
        return coerce_content(self.type, self.content)


class VectorEntry(BaseModel):
    """
    Stored memory unit with its embedding.

    Created by store_memory, share_knowledge and learn_pattern. Access fields
    are bumped whenever a search surfaces the entry.
    """

    id: str = Field(min_length=1)
    content: str = ""
    payload: Optional[MemoryContent] = None
    embedding: List[float] = Field(default_factory=list)
    agent_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=utcnow)
    type: EntryType = "knowledge"
    tags: List[str] = Field(default_factory=list)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    context: str = ""
    relationships: List[str] = Field(default_factory=list)
    access_count: int = Field(default=0, ge=0)
    last_accessed: datetime = Field(default_factory=utcnow)
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    project_id: Optional[str] = None

    @field_validator("created_at", "last_accessed")
    @classmethod
    def _timestamps_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: List[str]) -> List[str]:
        return _dedupe(value)

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return (resolve_now(now) - self.created_at).total_seconds()

    def record_access(self, now: Optional[datetime] = None) -> None:
        """Bookkeeping for a search hit."""
        self.access_count += 1
        self.last_accessed = resolve_now(now)

    def add_relationship(self, entry_id: str) -> None:
        if entry_id != self.id and entry_id not in self.relationships:
            self.relationships.append(entry_id)

    def embedding_text(self) -> str:
        """Text fed to the embedder: rendered content followed by tags."""
        if not self.tags:
            return self.content
        return f"{self.content}\n{' '.join(self.tags)}"

    def to_record(self) -> Dict[str, Any]:
        """Convert to a plain dict for the persistence collaborator."""
        return {
            "id": self.id,
            "content": self.content,
            "payload": self.payload.model_dump(mode="json") if self.payload is not None else None,
            "embedding": list(self.embedding),
            "agent_id": self.agent_id,
            "created_at": self.created_at.isoformat(),
            "type": self.type,
            "tags": list(self.tags),
            "importance": self.importance,
            "context": self.context,
            "relationships": list(self.relationships),
            "access_count": self.access_count,
            "last_accessed": self.last_accessed.isoformat(),
            "relevance_score": self.relevance_score,
            "project_id": self.project_id,
        }

    @classmethod
    def from_record(cls, doc: Dict[str, Any]) -> VectorEntry:
        """Create instance from a persisted record."""
        payload = doc.get("payload")
        if isinstance(payload, dict) and "kind" not in payload:
            payload = RawContent(payload=payload).model_dump()
        return cls(
            id=doc["id"],
            content=doc.get("content", ""),
            payload=payload,
            embedding=doc.get("embedding", []),
            agent_id=doc["agent_id"],
            created_at=_parse_timestamp(doc["created_at"]),
            type=doc.get("type", "knowledge"),
            tags=doc.get("tags", []),
            importance=doc.get("importance", 0.5),
            context=doc.get("context", ""),
            relationships=doc.get("relationships", []),
            access_count=doc.get("access_count", 0),
            last_accessed=_parse_timestamp(doc["last_accessed"]) if doc.get("last_accessed") else utcnow(),
            relevance_score=doc.get("relevance_score", 0.5),
            project_id=doc.get("project_id"),
        )


class GraphNode(BaseModel):
    """Projection of a VectorEntry into the knowledge graph."""

    id: str
    type: NodeType = "concept"
    properties: Dict[str, Any] = Field(default_factory=dict)
    embedding: List[float] = Field(default_factory=list)
    connections: List[str] = Field(default_factory=list)  # edge ids

    @classmethod
    def from_entry(cls, entry: VectorEntry) -> GraphNode:
        return cls(
            id=entry.id,
            type=node_type_for(entry.type),
            properties={
                "content": entry.content,
                "agent_id": entry.agent_id,
                "tags": list(entry.tags),
                "importance": entry.importance,
            },
            embedding=list(entry.embedding),
        )


class GraphEdge(BaseModel):
    """Undirected relationship link between two nodes."""

    id: str
    source: str
    target: str
    type: EdgeType = "related_to"
    weight: float = 1.0
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def other(self, node_id: str) -> str:
        return self.target if self.source == node_id else self.source


class Community(BaseModel):
    """Connected component of the graph with more than two members."""

    id: str
    nodes: List[str]
    topic: str
    coherence: float
    importance: float


class MemoryCluster(BaseModel):
    """Thematic group produced by a clustering pass."""

    id: str
    centroid: List[float]
    entries: List[str]
    theme: str
    coherence_score: float
    last_updated: datetime = Field(default_factory=utcnow)


class ConsolidationReport(BaseModel):
    """Summary of one consolidation run (or of the run already in progress)."""

    clusters_formed: int = 0
    patterns_identified: List[str] = Field(default_factory=list)
    obsolete_entries_removed: int = 0
    capacity_evictions: int = 0
    knowledge_graph_updated: bool = False
    insights: List[str] = Field(default_factory=list)
    in_progress: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass(slots=True)
class SearchResult:
    """Ranked search hit; ``entry`` is the live stored object."""

    entry: VectorEntry
    similarity: float
    relevance: float
    explanation: str = ""
    related_entries: List[VectorEntry] = field(default_factory=list)


@dataclass(slots=True)
class KnowledgeGraphSnapshot:
    """Defensive copy of the graph handed to callers."""

    nodes: Dict[str, GraphNode]
    edges: Dict[str, GraphEdge]
    communities: Dict[str, Community]


__all__ = [
    "SYSTEM_AGENT_ID",
    "InputMemoryType",
    "EntryType",
    "NodeType",
    "EdgeType",
    "utcnow",
    "as_utc",
    "resolve_now",
    "generate_timestamp_key",
    "categorize_memory_type",
    "node_type_for",
    "MemoryEntry",
    "VectorEntry",
    "GraphNode",
    "GraphEdge",
    "Community",
    "MemoryCluster",
    "ConsolidationReport",
    "SearchResult",
    "KnowledgeGraphSnapshot",
]
