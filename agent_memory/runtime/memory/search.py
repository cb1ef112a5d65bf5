"""
Similarity Search - Ranked semantic retrieval over the vector store

WHAT: Filtered cosine search with recency-decayed relevance and explanations
WHERE: agent_memory/runtime/memory/search.py - retrieval layer
WHO: Engine search API, store-time relation linking, knowledge transfer
TIME: O(n·D) per query (single matrix product over filtered entries)

Ranking is primarily by cosine similarity. Ties are broken by a relevance
score blending similarity with exponential recency decay (half-life), then by
stored importance.

Boundary Notes:
- Empty store / nothing above threshold -> [] (not an error)
- Surfaced entries get access_count/last_accessed bumped in place
- Only structurally invalid queries raise ValidationError
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from .embedding import Embedder, cosine_similarities
from .errors import ValidationError
from .models import SearchResult, VectorEntry, resolve_now
from .vector_store import InMemoryVectorStore

logger = logging.getLogger(__name__)

Query = Union[str, Sequence[float]]


@dataclass(slots=True)
class SearchConfig:
    """Configuration for similarity search and relevance blending."""

    default_limit: int = 10
    default_threshold: float = 0.0
    half_life_hours: float = 24.0
    similarity_weight: float = 0.7
    recency_weight: float = 0.3
    related_limit: int = 3


@dataclass(slots=True)
class SearchFilters:
    """Exact-match filters; ``tags`` matches when any tag intersects."""

    agent_id: Optional[str] = None
    tags: Optional[List[str]] = None
    type: Optional[str] = None
    project_id: Optional[str] = None
    exclude_ids: Optional[Iterable[str]] = None

    def matches(self, entry: VectorEntry) -> bool:
        if self.agent_id is not None and entry.agent_id != self.agent_id:
            return False
        if self.type is not None and entry.type != self.type:
            return False
        if self.project_id is not None and entry.project_id != self.project_id:
            return False
        if self.tags and not set(self.tags).intersection(entry.tags):
            return False
        return True


def recency_score(entry: VectorEntry, half_life_hours: float, now: Optional[datetime] = None) -> float:
    """Exponential decay in [0, 1]; 0.5 after one half-life."""
    if half_life_hours <= 0:
        return 0.0
    age_hours = max(0.0, entry.age_seconds(now) / 3600.0)
    return math.pow(0.5, age_hours / half_life_hours)


def explain_match(query: Optional[str], entry: VectorEntry, similarity: float) -> str:
    reasons: List[str] = []
    if similarity > 0.9:
        reasons.append("Very high semantic similarity")
    elif similarity > 0.7:
        reasons.append("High semantic similarity")
    elif similarity > 0.5:
        reasons.append("Moderate semantic similarity")

    if entry.importance > 0.8:
        reasons.append("High importance score")
    if entry.access_count > 10:
        reasons.append("Frequently accessed")

    if query:
        lowered = [t.lower() for t in entry.tags]
        words = [w for w in query.lower().split() if w]
        matched = [w for w in words if any(w in tag for tag in lowered)]
        if matched:
            reasons.append(f"Matches tags: {', '.join(matched)}")

    return "; ".join(reasons)


class SimilaritySearchEngine:
    """Ranks store contents against a query text or vector."""

    def __init__(
        self,
        store: InMemoryVectorStore,
        embedder: Embedder,
        config: SearchConfig | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.config = config or SearchConfig()

    def resolve_query(self, query: Query) -> List[float]:
        """Embed text queries; validate vector queries."""
        if isinstance(query, str):
            return self.embedder.embed_query(query)
        if isinstance(query, (list, tuple, np.ndarray)):
            vec = [float(v) for v in query]
            if len(vec) != self.embedder.dimension:
                raise ValidationError(
                    f"Query vector has dimension {len(vec)}, expected {self.embedder.dimension}"
                )
            return vec
        raise ValidationError(f"Unembeddable query of type {type(query).__name__}")

    def search(
        self,
        query: Query,
        *,
        filters: SearchFilters | None = None,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
        record_access: bool = True,
        include_related: bool = True,
        now: Optional[datetime] = None,
    ) -> List[SearchResult]:
        """
        Rank entries passing ``filters`` by similarity to ``query``.

        Args:
            query: Natural language text or a vector of the store dimension
            filters: agent/tags/type/project filters
            limit: Maximum number of results
            threshold: Minimum cosine similarity (inclusive)
            record_access: Bump access bookkeeping on surfaced entries
            include_related: Resolve up to ``related_limit`` related entries

        Returns:
            SearchResult list, best first
        """
        limit = self.config.default_limit if limit is None else limit
        threshold = self.config.default_threshold if threshold is None else threshold
        filters = filters or SearchFilters()
        now = resolve_now(now)

        query_vec = self.resolve_query(query)
        if limit <= 0 or not any(query_vec):
            return []

        excluded = set(filters.exclude_ids or ())
        candidates = [
            e for e in self.store.iter_entries() if e.id not in excluded and filters.matches(e)
        ]
        if not candidates:
            return []

        matrix = np.asarray([e.embedding for e in candidates], dtype=np.float64)
        sims = cosine_similarities(query_vec, matrix)

        scored: List[tuple[float, float, VectorEntry]] = []
        for entry, sim in zip(candidates, sims.tolist()):
            if sim < threshold:
                continue
            relevance = self.relevance(entry, sim, now)
            scored.append((sim, relevance, entry))

        scored.sort(key=lambda t: (-t[0], -t[1], -t[2].importance, t[2].id))
        top = scored[:limit]

        query_text = query if isinstance(query, str) else None
        results: List[SearchResult] = []
        for sim, relevance, entry in top:
            if record_access:
                entry.record_access(now)
            related = self.related_entries(entry) if include_related else []
            results.append(
                SearchResult(
                    entry=entry,
                    similarity=sim,
                    relevance=relevance,
                    explanation=explain_match(query_text, entry, sim),
                    related_entries=related,
                )
            )

        logger.debug(
            f"Search matched {len(scored)} of {len(candidates)} candidates "
            f"(threshold={threshold}, returned={len(results)})"
        )
        return results

    def relevance(self, entry: VectorEntry, similarity: float, now: Optional[datetime] = None) -> float:
        recency = recency_score(entry, self.config.half_life_hours, now)
        return similarity * self.config.similarity_weight + recency * self.config.recency_weight

    def related_entries(self, entry: VectorEntry, limit: Optional[int] = None) -> List[VectorEntry]:
        limit = self.config.related_limit if limit is None else limit
        related: List[VectorEntry] = []
        for rel_id in entry.relationships:
            if len(related) >= limit:
                break
            other = self.store.get(rel_id)
            if other is not None:
                related.append(other)
        return related

    def search_by_tags(self, tags: List[str], *, limit: int = 20, match_all: bool = False) -> List[VectorEntry]:
        """Entries carrying any (or all) of ``tags``, most important first."""
        wanted = set(tags)
        if not wanted:
            return []
        hits = [
            e
            for e in self.store.iter_entries()
            if (wanted.issubset(e.tags) if match_all else wanted.intersection(e.tags))
        ]
        hits.sort(key=lambda e: (-e.importance, -e.created_at.timestamp(), e.id))
        return hits[:limit]


__all__ = [
    "Query",
    "SearchConfig",
    "SearchFilters",
    "SimilaritySearchEngine",
    "explain_match",
    "recency_score",
]
