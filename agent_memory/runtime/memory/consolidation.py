"""
Memory Consolidation Engine - Cluster, prune, and repair the memory store

WHAT: Periodic maintenance pass over the whole store
WHERE: agent_memory/runtime/memory/consolidation.py - consolidation layer
WHO: Engine facade (size triggers, explicit calls) and external drivers
TIME: Dominated by clustering; ~50ms for 1k entries at D=384

Each run executes, strictly in order:
1. Clustering over the full store
2. Tag co-occurrence patterns per cluster
3. Obsolescence sweep (old AND unused AND unimportant), then capacity eviction
4. Structural repair: purge dangling edges, rebuild communities
5. Insights (most active agent, most common tag, mean cluster size)

Boundary Notes:
- Re-entrant triggers return the latest report flagged in_progress
- Scheduler returns to IDLE on every exit path
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from .clustering import ClusteringEngine, common_tags
from .graph import KnowledgeGraphBuilder
from .models import ConsolidationReport, MemoryCluster, VectorEntry, resolve_now, utcnow
from .scheduler import ConsolidationScheduler
from .search import recency_score
from .vector_store import InMemoryVectorStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConsolidationConfig:
    """Configuration for consolidation and eviction."""

    max_age_days: float = 90.0  # Older than this is a sweep candidate
    min_access_count: int = 1  # Fewer accesses than this is a sweep candidate
    low_importance: float = 0.3  # Less important than this is a sweep candidate
    pattern_tag_frequency: float = 0.3  # Tag share of members to count as common
    min_common_tags: int = 3  # Common tags needed to report a theme pattern
    sequence_min_members: int = 4  # Members needed to report a sequential pattern
    retention_half_life_hours: float = 24.0 * 30  # Recency decay for capacity eviction


class ConsolidationEngine:
    """
    Runs the consolidation pipeline over one store and its graph.

    The cluster map is replaced wholesale on every run; it is never patched
    incrementally.
    """

    def __init__(
        self,
        store: InMemoryVectorStore,
        graph: KnowledgeGraphBuilder,
        clustering: ClusteringEngine | None = None,
        scheduler: ConsolidationScheduler | None = None,
        config: ConsolidationConfig | None = None,
    ) -> None:
        self.store = store
        self.graph = graph
        self.clustering = clustering or ClusteringEngine()
        self.scheduler = scheduler or ConsolidationScheduler()
        self.config = config or ConsolidationConfig()
        self.clusters: Dict[str, MemoryCluster] = {}

    def consolidate(self, now: Optional[datetime] = None) -> ConsolidationReport:
        """Guarded entry point; a no-op report while another run is active."""
        return self.scheduler.run(lambda: self._consolidate(now))

    def _consolidate(self, now: Optional[datetime] = None) -> ConsolidationReport:
        now = resolve_now(now)
        report = ConsolidationReport(started_at=utcnow())
        logger.info(f"Starting memory consolidation over {self.store.size()} entries")

        # 1. Semantic clusters
        clusters = self.clustering.cluster(self.store.entries())
        self.clusters = {c.id: c for c in clusters}
        report.clusters_formed = len(clusters)

        # 2. Patterns within clusters
        for cluster in clusters:
            report.patterns_identified.extend(self.identify_cluster_patterns(cluster))

        # 3. Obsolescence sweep, then soft capacity
        removed = self.remove_obsolete_entries(now)
        evicted = self.enforce_capacity(now)
        report.obsolete_entries_removed = len(removed)
        report.capacity_evictions = len(evicted)
        self._forget(removed | evicted)

        # 4. Structural repair
        self.graph.repair()
        report.knowledge_graph_updated = True

        # 5. Insights
        report.insights = self.generate_insights()
        report.finished_at = utcnow()

        logger.info(
            f"Consolidation complete: {report.clusters_formed} clusters, "
            f"{len(report.patterns_identified)} patterns, "
            f"{report.obsolete_entries_removed} obsolete removed, "
            f"{report.capacity_evictions} evicted for capacity"
        )
        return report

    # ---------------------- steps ----------------------
    def identify_cluster_patterns(self, cluster: MemoryCluster) -> List[str]:
        members = [e for e in (self.store.get(i) for i in cluster.entries) if e is not None]
        patterns: List[str] = []

        shared = common_tags(members, self.config.pattern_tag_frequency)
        if len(shared) >= self.config.min_common_tags:
            patterns.append(f"Common theme: {', '.join(shared)}")

        if len(members) >= self.config.sequence_min_members:
            patterns.append(f"Sequential learning pattern in {cluster.theme or 'untagged memories'}")
        return patterns

    def is_obsolete(self, entry: VectorEntry, now: datetime) -> bool:
        """Old AND never accessed AND unimportant; any one failing keeps it."""
        is_old = resolve_now(now) - entry.created_at > timedelta(days=self.config.max_age_days)
        is_unused = entry.access_count < self.config.min_access_count
        is_low_importance = entry.importance < self.config.low_importance
        return is_old and is_unused and is_low_importance

    def remove_obsolete_entries(self, now: datetime) -> Set[str]:
        removed: Set[str] = set()
        for entry in self.store.iter_entries():
            if self.is_obsolete(entry, now):
                self._delete(entry.id)
                removed.add(entry.id)
        if removed:
            logger.info(f"Obsolescence sweep removed {len(removed)} entries")
        return removed

    def retention_score(self, entry: VectorEntry, now: datetime) -> float:
        recency = recency_score(entry, self.config.retention_half_life_hours, now)
        return 0.5 * entry.importance + 0.5 * recency

    def enforce_capacity(self, now: datetime) -> Set[str]:
        """Evict least-retained entries until the store is within capacity."""
        overflow = self.store.over_capacity()
        if overflow <= 0:
            return set()
        ranked = sorted(self.store.iter_entries(), key=lambda e: (self.retention_score(e, now), e.id))
        evicted: Set[str] = set()
        for entry in ranked[:overflow]:
            self._delete(entry.id)
            evicted.add(entry.id)
        logger.warning(f"Store over capacity by {overflow}; evicted {len(evicted)} entries")
        return evicted

    def generate_insights(self) -> List[str]:
        insights: List[str] = []
        agents: Counter[str] = Counter()
        topics: Counter[str] = Counter()
        for entry in self.store.iter_entries():
            agents[entry.agent_id] += 1
            topics.update(entry.tags)

        if agents:
            agent, count = agents.most_common(1)[0]
            insights.append(f"Most active agent: {agent} with {count} memories")
        if topics:
            tag, count = topics.most_common(1)[0]
            insights.append(f"Most common topic: {tag} ({count} occurrences)")
        if self.clusters:
            avg = sum(len(c.entries) for c in self.clusters.values()) / len(self.clusters)
            insights.append(f"Average cluster size: {round(avg)} memories")
        return insights

    # ---------------------- helpers ----------------------
    def _delete(self, entry_id: str) -> None:
        self.store.delete(entry_id)
        self.graph.remove_node(entry_id)

    def _forget(self, removed: Set[str]) -> None:
        """Drop references to deleted ids from surviving entries and clusters."""
        if not removed:
            return
        for entry in self.store.iter_entries():
            if removed.intersection(entry.relationships):
                entry.relationships = [r for r in entry.relationships if r not in removed]
        for cluster in self.clusters.values():
            cluster.entries = [i for i in cluster.entries if i not in removed]


__all__ = [
    "ConsolidationConfig",
    "ConsolidationEngine",
]
