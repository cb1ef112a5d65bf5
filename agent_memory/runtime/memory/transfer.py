"""
Knowledge Transfer - Cross-agent sharing and pattern synthesis

WHAT: Copies curated memories between agents; derives pattern entries
WHERE: agent_memory/runtime/memory/transfer.py - transfer layer
WHO: Engine facade share_knowledge/learn_pattern
TIME: One search + O(m) inserts per share; O(n·D) per learned pattern

Transfer keeps only strong matches (similarity > 0.6) of important memories
(importance > 0.7) that carry none of the non-transferable tags. Copies keep
the source embedding verbatim, lose 20% importance, and link back to their
source. Learned patterns average member embeddings and link both ways.

Boundary Notes:
- Copies and patterns are persisted through the store and the graph
- Back-links are appended to the stored source entries (best effort)
- A source already copied to the target agent is not copied again
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Sequence

from .clustering import common_tags
from .embedding import cosine_similarity, mean_vector
from .errors import ValidationError
from .graph import KnowledgeGraphBuilder
from .models import SYSTEM_AGENT_ID, VectorEntry, generate_timestamp_key, utcnow
from .search import SearchFilters, SimilaritySearchEngine
from .vector_store import InMemoryVectorStore

logger = logging.getLogger(__name__)

NON_TRANSFERABLE_TAGS: FrozenSet[str] = frozenset({"personal", "private", "agent-specific", "temporary"})


@dataclass(slots=True)
class TransferConfig:
    """Configuration for knowledge transfer and pattern learning."""

    search_limit: int = 20
    min_similarity: float = 0.6  # Strictly greater than
    min_importance: float = 0.7  # Strictly greater than
    importance_decay: float = 0.8
    transfer_tag: str = "transferred_knowledge"
    non_transferable_tags: FrozenSet[str] = field(default_factory=lambda: NON_TRANSFERABLE_TAGS)
    pattern_tag_frequency: float = 0.3
    pattern_importance_boost: float = 1.2


class KnowledgeTransferService:
    """Filters and copies entries across agent ownership boundaries."""

    def __init__(
        self,
        store: InMemoryVectorStore,
        graph: KnowledgeGraphBuilder,
        search: SimilaritySearchEngine,
        config: TransferConfig | None = None,
    ) -> None:
        self.store = store
        self.graph = graph
        self.search = search
        self.config = config or TransferConfig()

    def is_transferable(self, entry: VectorEntry) -> bool:
        blocked = self.config.non_transferable_tags
        return not any(tag.lower() in blocked for tag in entry.tags)

    def already_shared(self, source: VectorEntry, target_agent: str) -> bool:
        """True when a live copy of ``source`` is already owned by ``target_agent``."""
        for related_id in source.relationships:
            related = self.store.get(related_id)
            if related is None or related.agent_id != target_agent:
                continue
            if source.id in related.relationships and self.config.transfer_tag in related.tags:
                return True
        return False

    def share_knowledge(self, source_agent: str, target_agent: str, topic: str) -> List[VectorEntry]:
        """
        Copy ``source_agent``'s strongest memories on ``topic`` to ``target_agent``.

        Args:
            source_agent: Agent whose memories are searched
            target_agent: Agent receiving the copies
            topic: Query text

        Returns:
            The newly stored copies (possibly empty)
        """
        results = self.search.search(
            topic,
            filters=SearchFilters(agent_id=source_agent),
            limit=self.config.search_limit,
            threshold=self.config.min_similarity,
            include_related=False,
        )

        transferred: List[VectorEntry] = []
        for result in results:
            source = result.entry
            if result.similarity <= self.config.min_similarity:
                continue
            if source.importance <= self.config.min_importance:
                continue
            if not self.is_transferable(source):
                continue
            if self.already_shared(source, target_agent):
                continue

            copy = VectorEntry(
                id=generate_timestamp_key("transfer"),
                content=f"[Transferred from {source_agent} to {target_agent}] {source.content}",
                payload=source.payload.model_copy(deep=True) if source.payload is not None else None,
                embedding=list(source.embedding),
                agent_id=target_agent,
                created_at=utcnow(),
                type="knowledge",
                tags=[*source.tags, self.config.transfer_tag],
                importance=source.importance * self.config.importance_decay,
                context=f"Transferred from {source_agent}: {source.context}",
                relationships=[source.id],
                relevance_score=source.relevance_score * self.config.importance_decay,
                project_id=source.project_id,
            )
            self.store.put(copy)
            self.graph.add_entry(copy, weights={source.id: 1.0})
            source.add_relationship(copy.id)
            transferred.append(copy)

        logger.info(
            f"Shared {len(transferred)} of {len(results)} candidate memories "
            f"from {source_agent} to {target_agent} on '{topic}'"
        )
        return transferred

    def learn_pattern(self, entries: Sequence[VectorEntry], name: str) -> VectorEntry:
        """
        Store a system-owned pattern entry summarising ``entries``.

        Raises:
            ValidationError: If no entries are given or embeddings disagree in size
        """
        if not entries:
            raise ValidationError("Cannot learn a pattern from zero entries")
        dimension = len(entries[0].embedding)
        if any(len(e.embedding) != dimension for e in entries):
            raise ValidationError("Pattern members have mismatched embedding dimensions")

        centroid = mean_vector([e.embedding for e in entries], dimension)
        shared = common_tags(entries, self.config.pattern_tag_frequency)
        mean_importance = sum(e.importance for e in entries) / len(entries)
        importance = min(mean_importance * self.config.pattern_importance_boost, 1.0)
        member_ids = list(dict.fromkeys(e.id for e in entries))

        pattern = VectorEntry(
            id=generate_timestamp_key("pattern"),
            content=f'Pattern "{name}" identified from {len(entries)} experiences: {", ".join(shared)}',
            embedding=centroid,
            agent_id=SYSTEM_AGENT_ID,
            created_at=utcnow(),
            type="pattern",
            tags=["learned_pattern", name, *shared],
            importance=importance,
            context=f"Pattern learned from {len(entries)} experiences",
            relationships=member_ids,
            relevance_score=importance,
        )
        self.store.put(pattern)
        weights = {e.id: cosine_similarity(e.embedding, centroid) for e in entries}
        self.graph.add_entry(pattern, weights=weights)

        for entry in entries:
            stored = self.store.get(entry.id) or entry
            stored.add_relationship(pattern.id)

        logger.info(f"Learned pattern '{name}' ({pattern.id}) from {len(entries)} entries")
        return pattern


__all__ = [
    "NON_TRANSFERABLE_TAGS",
    "TransferConfig",
    "KnowledgeTransferService",
]
