"""
Semantic Memory Engine - Central coordination point

WHAT: Facade tying embedding, storage, search, graph, consolidation, transfer
WHERE: agent_memory/runtime/memory/engine.py - top of the memory stack
WHO: Orchestration layer (one engine instance per process, passed by handle)
TIME: store ~O(n·D) (relation lookup), search O(n·D), consolidation O(n·k·D)

The engine is constructed once at startup and handed to every caller; there
is no module-level instance. All cross-references are ids resolved through the
engine's single vector store. The engine owns no timers: periodic
consolidation is driven from outside via ``consolidation_due`` and
``run_scheduled_consolidation``; size-triggered consolidation runs inline on
store when ``auto_consolidate`` is enabled.

Boundary Notes:
- Malformed input raises ValidationError; unknown ids on explicit lookups
  raise NotFoundError; "nothing found" is always an empty result
- Consolidation races never raise; callers get an in_progress report
- Search results expose live entries; export_memories returns deep copies
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from .clustering import ClusteringConfig, ClusteringEngine
from .consolidation import ConsolidationConfig, ConsolidationEngine
from .content import render_content
from .embedding import Embedder, EmbeddingConfig, HashingEmbedder, cosine_similarity
from .errors import ValidationError
from .graph import GraphConfig, KnowledgeGraphBuilder
from .models import (
    ConsolidationReport,
    KnowledgeGraphSnapshot,
    MemoryCluster,
    MemoryEntry,
    SearchResult,
    VectorEntry,
    categorize_memory_type,
)
from .scheduler import ConsolidationScheduler, SchedulerConfig
from .search import Query, SearchConfig, SearchFilters, SimilaritySearchEngine
from .telemetry import NoOpTelemetryClient, TelemetryClient
from .transfer import KnowledgeTransferService, TransferConfig
from .vector_store import InMemoryVectorStore

logger = logging.getLogger(__name__)

ENV_PREFIX = "MEMORY_ENGINE_"


def _env_value(name: str, cast: Any, default: Any) -> Any:
    raw = os.environ.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from exc


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(raw)


@dataclass(slots=True)
class EngineConfig:
    """Aggregated configuration for one engine instance."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    max_memory_size: int = 50_000
    relation_threshold: float = 0.7  # Store-time linking, inclusive
    relation_limit: int = 5
    related_memories_threshold: float = 0.6
    related_memories_limit: int = 5
    tag_search_limit: int = 20
    expert_limit: int = 3
    agent_memory_limit: int = 50
    summary_item_limit: int = 5

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create from ``MEMORY_ENGINE_*`` environment variables, defaulting the rest."""
        cfg = cls()
        cfg.embedding.dimension = _env_value("DIMENSION", int, cfg.embedding.dimension)
        cfg.max_memory_size = _env_value("MAX_MEMORY_SIZE", int, cfg.max_memory_size)
        cfg.scheduler.size_threshold = _env_value(
            "CONSOLIDATION_THRESHOLD", int, cfg.scheduler.size_threshold
        )
        cfg.scheduler.interval_seconds = _env_value(
            "CONSOLIDATION_INTERVAL_SECONDS", float, cfg.scheduler.interval_seconds
        )
        cfg.scheduler.auto_consolidate = _env_value(
            "AUTO_CONSOLIDATE", _parse_bool, cfg.scheduler.auto_consolidate
        )
        cfg.search.half_life_hours = _env_value("HALF_LIFE_HOURS", float, cfg.search.half_life_hours)
        cfg.clustering.seed = _env_value("CLUSTER_SEED", int, cfg.clustering.seed)
        return cfg


def build_context(agent_id: str, entry_type: str, tags: Sequence[str], extra: Optional[str] = None) -> str:
    parts = [f"Agent: {agent_id}", f"Type: {entry_type}"]
    if tags:
        parts.append(f"Tags: {', '.join(tags)}")
    if extra:
        parts.append(f"Context: {extra}")
    return " | ".join(parts)


class SemanticMemoryEngine:
    """Facade that coordinates storage, retrieval, graph upkeep and consolidation."""

    def __init__(
        self,
        *,
        config: EngineConfig | None = None,
        embedder: Embedder | None = None,
        store: InMemoryVectorStore | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        cfg = config or EngineConfig()
        self._config = cfg
        self._embedder = embedder or HashingEmbedder(cfg.embedding)
        self._store = store or InMemoryVectorStore(max_memory_size=cfg.max_memory_size)
        self._graph = KnowledgeGraphBuilder(cfg.graph)
        self._search = SimilaritySearchEngine(self._store, self._embedder, cfg.search)
        self._scheduler = ConsolidationScheduler(cfg.scheduler)
        self._consolidation = ConsolidationEngine(
            self._store,
            self._graph,
            clustering=ClusteringEngine(cfg.clustering),
            scheduler=self._scheduler,
            config=cfg.consolidation,
        )
        self._transfer = KnowledgeTransferService(self._store, self._graph, self._search, cfg.transfer)
        self._telemetry = telemetry or NoOpTelemetryClient()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    @property
    def store(self) -> InMemoryVectorStore:
        return self._store

    @property
    def graph(self) -> KnowledgeGraphBuilder:
        return self._graph

    @property
    def scheduler(self) -> ConsolidationScheduler:
        return self._scheduler

    @property
    def telemetry(self) -> TelemetryClient:
        return self._telemetry

    @property
    def clusters(self) -> Dict[str, MemoryCluster]:
        return dict(self._consolidation.clusters)

    # ============================================================
    # Store / lookup
    # ============================================================

    def store_memory(self, entry: Union[MemoryEntry, Mapping[str, Any]], agent_id: Optional[str] = None) -> str:
        """
        Embed, link and persist one memory.

        Args:
            entry: Incoming memory (model or plain mapping)
            agent_id: Owner; falls back to ``entry.agent_id``

        Returns:
            The stored entry id (storing an existing id overwrites it)

        Raises:
            ValidationError: Missing id/owner, bad bounds, or wrong embedding size
        """
        memory = self._coerce_entry(entry)
        owner = agent_id or memory.agent_id
        if not owner:
            raise ValidationError(f"Memory '{memory.id}' has no agent_id")

        with self._telemetry.span("memory.store", attributes={"agent_id": owner}) as span:
            vector = self._to_vector_entry(memory, owner)

            related = self._search.search(
                vector.embedding,
                filters=SearchFilters(exclude_ids=[vector.id]),
                limit=self._config.relation_limit,
                threshold=self._config.relation_threshold,
                record_access=False,
                include_related=False,
            )
            previous = self._store.get(vector.id)
            if previous is not None:
                for rel_id in previous.relationships:
                    if rel_id in self._store:
                        vector.add_relationship(rel_id)
            for result in related:
                vector.add_relationship(result.entry.id)

            is_new = self._store.put(vector)
            self._graph.add_entry(vector, weights={r.entry.id: r.similarity for r in related})
            for result in related:
                result.entry.add_relationship(vector.id)

            span.set_attribute("entry_id", vector.id)
            span.set_attribute("relations", len(related))
            span.set_attribute("store_size", self._store.size())

        logger.info(
            f"{'Stored' if is_new else 'Overwrote'} memory {vector.id} for {owner} "
            f"({vector.type}, {len(related)} related)"
        )

        if self._scheduler.should_run_for_size(self._store.size()):
            logger.info(f"Store size {self._store.size()} crossed consolidation threshold")
            self.consolidate_memories()
        return vector.id

    def get_entry(self, entry_id: str) -> VectorEntry:
        """Point lookup; raises NotFoundError for unknown ids."""
        return self._store.require(entry_id)

    def _coerce_entry(self, entry: Union[MemoryEntry, Mapping[str, Any]]) -> MemoryEntry:
        if isinstance(entry, MemoryEntry):
            return entry
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Unsupported memory entry of type {type(entry).__name__}")
        try:
            return MemoryEntry.model_validate(dict(entry))
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed memory entry: {exc}") from exc

    def _to_vector_entry(self, memory: MemoryEntry, owner: str) -> VectorEntry:
        payload = memory.typed_content()
        entry_type = categorize_memory_type(memory.type, memory.tags)
        try:
            vector = VectorEntry(
                id=memory.id,
                content=render_content(payload),
                payload=payload,
                agent_id=owner,
                created_at=memory.created_at,
                type=entry_type,
                tags=memory.tags,
                importance=memory.relevance_score,
                context=build_context(owner, entry_type, memory.tags, payload.context),
                relevance_score=memory.relevance_score,
                project_id=memory.project_id,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed memory entry '{memory.id}': {exc}") from exc
        vector.embedding = self._embed(vector.embedding_text())
        return vector

    def _embed(self, text: str) -> List[float]:
        embedding = self._embedder.embed(text)
        if len(embedding) != self._embedder.dimension:
            raise ValidationError(
                f"Embedder returned dimension {len(embedding)}, expected {self._embedder.dimension}"
            )
        return embedding

    # ============================================================
    # Retrieval
    # ============================================================

    def search_memories(
        self,
        query: Query,
        agent_id: Optional[str] = None,
        limit: int = 10,
        *,
        tags: Optional[List[str]] = None,
        entry_type: Optional[str] = None,
        project_id: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[SearchResult]:
        """Ranked semantic search; surfaced entries get their access bumped."""
        filters = SearchFilters(agent_id=agent_id, tags=tags, type=entry_type, project_id=project_id)
        with self._telemetry.span(
            "memory.search",
            attributes={"agent_id": agent_id, "limit": limit},
        ) as span:
            results = self._search.search(query, filters=filters, limit=limit, threshold=threshold)
            span.set_attribute("results", len(results))
        return results

    def get_related_memories(self, entry_id: str, limit: Optional[int] = None) -> List[VectorEntry]:
        entry = self._store.get(entry_id)
        if entry is None:
            return []
        results = self._search.search(
            entry.embedding,
            filters=SearchFilters(agent_id=entry.agent_id, exclude_ids=[entry_id]),
            limit=self._config.related_memories_limit if limit is None else limit,
            threshold=self._config.related_memories_threshold,
            include_related=False,
        )
        return [r.entry for r in results]

    def search_by_tags(self, tags: List[str], limit: Optional[int] = None) -> List[VectorEntry]:
        return self._search.search_by_tags(
            tags, limit=self._config.tag_search_limit if limit is None else limit
        )

    # ============================================================
    # Knowledge transfer
    # ============================================================

    def share_knowledge(self, source_agent: str, target_agent: str, topic: str) -> List[VectorEntry]:
        if not source_agent or not target_agent:
            raise ValidationError("share_knowledge requires both source and target agent ids")
        with self._telemetry.span(
            "memory.share",
            attributes={"source_agent": source_agent, "target_agent": target_agent},
        ) as span:
            transferred = self._transfer.share_knowledge(source_agent, target_agent, topic)
            span.set_attribute("transferred", len(transferred))
        return transferred

    def learn_pattern(self, entries: Sequence[Union[str, VectorEntry]], name: str) -> VectorEntry:
        """Synthesize a system-owned pattern from stored entries (ids or entries)."""
        members = [self._store.require(e) if isinstance(e, str) else e for e in entries]
        return self._transfer.learn_pattern(members, name)

    # ============================================================
    # Consolidation
    # ============================================================

    def consolidate_memories(self, now: Optional[datetime] = None) -> ConsolidationReport:
        with self._telemetry.span(
            "memory.consolidate",
            attributes={"store_size": self._store.size()},
        ) as span:
            report = self._consolidation.consolidate(now)
            span.set_attribute("in_progress", report.in_progress)
            span.set_attribute("clusters", report.clusters_formed)
            span.set_attribute("removed", report.obsolete_entries_removed + report.capacity_evictions)
        return report

    def consolidation_due(self, now: Optional[datetime] = None) -> bool:
        return self._scheduler.is_due(now)

    def run_scheduled_consolidation(self, now: Optional[datetime] = None) -> Optional[ConsolidationReport]:
        """Run a consolidation if the interval has elapsed; None otherwise."""
        if not self.consolidation_due(now):
            return None
        return self.consolidate_memories(now)

    # ============================================================
    # Graph
    # ============================================================

    def get_knowledge_graph(self) -> KnowledgeGraphSnapshot:
        return self._graph.snapshot()

    def find_knowledge_paths(
        self,
        source_id: str,
        target_id: str,
        max_hops: Optional[int] = None,
    ) -> List[List[str]]:
        return self._graph.find_paths(source_id, target_id, max_hops)

    # ============================================================
    # Expertise / stats
    # ============================================================

    def get_agent_expertise(self, agent_id: str) -> Dict[str, float]:
        """Tag -> summed importance over the agent's entries, scaled so the max is 1.0."""
        totals: Dict[str, float] = {}
        for entry in self._store.entries(agent_id):
            for tag in entry.tags:
                totals[tag] = totals.get(tag, 0.0) + entry.importance
        if not totals:
            return {}
        peak = max(totals.values())
        if peak <= 0:
            return {tag: 0.0 for tag in totals}
        return {tag: value / peak for tag, value in totals.items()}

    def find_expert_agents(self, topic: str, limit: Optional[int] = None) -> List[Tuple[str, float]]:
        limit = self._config.expert_limit if limit is None else limit
        agents = {e.agent_id for e in self._store.iter_entries()}
        scored = []
        for agent in agents:
            score = self.get_agent_expertise(agent).get(topic, 0.0)
            if score > 0:
                scored.append((agent, score))
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:limit]

    def list_agent_memories(
        self,
        agent_id: str,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[VectorEntry]:
        """
        The agent's entries ranked without a query.

        Importance stands in for similarity in the usual relevance blend, so
        important and recent entries come first.
        """
        limit = self._config.agent_memory_limit if limit is None else limit
        entries = self._store.entries(agent_id)
        entries.sort(key=lambda e: (-self._search.relevance(e, e.importance, now), e.id))
        return entries[:limit]

    def summarize_agent_experience(self, agent_id: str, domain: Optional[str] = None) -> str:
        """Plain-text digest of an agent's expertise and most recent memories."""
        entries = self._store.entries(agent_id)
        if domain:
            entries = [e for e in entries if domain in e.tags]
        scope = f" in {domain}" if domain else ""
        if not entries:
            return f"Agent {agent_id} has no recorded experience{scope}."

        top = self._config.summary_item_limit
        noun = "memory" if len(entries) == 1 else "memories"
        lines = [f"Agent {agent_id} has {len(entries)} {noun}{scope}."]
        expertise = sorted(self.get_agent_expertise(agent_id).items(), key=lambda item: (-item[1], item[0]))
        if expertise:
            lines.append("Top expertise: " + ", ".join(f"{tag} ({score:.2f})" for tag, score in expertise[:top]))
        lines.append("Recent experience:")
        recent = sorted(entries, key=lambda e: (e.created_at, e.id), reverse=True)[:top]
        lines.extend(f"- [{e.type}] {e.content[:100]}" for e in recent)
        return "\n".join(lines)

    def get_memory_stats(self) -> Dict[str, Any]:
        by_agent: Counter[str] = Counter()
        by_type: Counter[str] = Counter()
        tags: Counter[str] = Counter()
        for entry in self._store.iter_entries():
            by_agent[entry.agent_id] += 1
            by_type[entry.type] += 1
            tags.update(entry.tags)

        last_run = self._scheduler.last_run_at
        return {
            "total_entries": self._store.size(),
            "total_clusters": len(self._consolidation.clusters),
            "knowledge_graph_nodes": len(self._graph.nodes),
            "knowledge_graph_edges": len(self._graph.edges),
            "communities": len(self._graph.communities),
            "is_consolidating": self._scheduler.is_running,
            "consolidation_runs": self._scheduler.runs_completed,
            "last_consolidation": last_run.isoformat() if last_run else None,
            "entries_by_agent": dict(by_agent),
            "entries_by_type": dict(by_type),
            "top_tags": tags.most_common(10),
        }

    # ============================================================
    # Persistence hooks
    # ============================================================

    def export_memories(self, agent_id: Optional[str] = None) -> List[VectorEntry]:
        """Deep copies of stored entries, optionally for one agent."""
        return [e.model_copy(deep=True) for e in self._store.entries(agent_id)]

    def import_memories(self, entries: Iterable[Union[VectorEntry, Mapping[str, Any]]]) -> int:
        """
        Insert entries whose ids are not already stored.

        Every entry is validated before any is inserted; entries without an
        embedding are re-embedded from their content.

        Returns:
            Number of entries imported
        """
        pending: List[VectorEntry] = []
        seen: set[str] = set()
        for raw in entries:
            entry = self._coerce_vector_entry(raw)
            if entry.id in self._store or entry.id in seen:
                continue
            if not entry.embedding:
                entry.embedding = self._embed(entry.embedding_text())
            elif len(entry.embedding) != self._embedder.dimension:
                raise ValidationError(
                    f"Entry '{entry.id}' has embedding dimension {len(entry.embedding)}, "
                    f"expected {self._embedder.dimension}"
                )
            seen.add(entry.id)
            pending.append(entry)

        for entry in pending:
            self._store.put(entry)
        for entry in pending:
            weights = {}
            for rel_id in entry.relationships:
                other = self._store.get(rel_id)
                if other is not None:
                    weights[rel_id] = cosine_similarity(entry.embedding, other.embedding)
            self._graph.add_entry(entry, weights=weights)

        logger.info(f"Imported {len(pending)} memories ({self._store.size()} stored)")
        return len(pending)

    def _coerce_vector_entry(self, raw: Union[VectorEntry, Mapping[str, Any]]) -> VectorEntry:
        if isinstance(raw, VectorEntry):
            return raw.model_copy(deep=True)
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Unsupported import record of type {type(raw).__name__}")
        try:
            return VectorEntry.from_record(dict(raw))
        except KeyError as exc:
            raise ValidationError(f"Import record missing field {exc}") from exc
        except (PydanticValidationError, ValueError) as exc:
            raise ValidationError(f"Malformed import record: {exc}") from exc


__all__ = [
    "ENV_PREFIX",
    "EngineConfig",
    "SemanticMemoryEngine",
    "build_context",
]
