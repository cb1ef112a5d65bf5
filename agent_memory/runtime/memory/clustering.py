"""
Clustering Engine - Thematic grouping of memories

WHAT: Randomly seeded k-means over cosine similarity
WHERE: agent_memory/runtime/memory/clustering.py - consolidation subsystem
WHO: Consolidation engine (step 1 of every run)
TIME: O(iterations · n · k · D), k ≤ 50

k = min(ceil(n / 100), 50). Centroids start as k distinct randomly sampled
member embeddings and are refined for a fixed number of rounds, then final
clusters are materialised by re-scanning every entry against every centroid.
Membership is not exclusive in that final scan. Results differ across runs
unless a seed is configured.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .models import MemoryCluster, VectorEntry, generate_timestamp_key, utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClusteringConfig:
    """Configuration for k-means clustering."""

    entries_per_cluster: int = 100
    max_clusters: int = 50
    iterations: int = 10
    membership_threshold: float = 0.3  # Final scan keeps similarity strictly above this
    min_cluster_size: int = 3
    theme_tag_count: int = 3
    seed: Optional[int] = None


def common_tags(entries: Sequence[VectorEntry], min_frequency: float = 0.3) -> List[str]:
    """Tags carried by at least ``ceil(n * min_frequency)`` of ``entries``."""
    if not entries:
        return []
    counts: Counter[str] = Counter()
    for entry in entries:
        counts.update(entry.tags)
    needed = max(1, math.ceil(len(entries) * min_frequency))
    return [tag for tag, count in counts.most_common() if count >= needed]


def _unit_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    return np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms > 0)


class ClusteringEngine:
    """Groups entries into thematic clusters."""

    def __init__(self, config: ClusteringConfig | None = None) -> None:
        self.config = config or ClusteringConfig()
        self._rng = np.random.default_rng(self.config.seed)

    def cluster_count(self, n: int) -> int:
        if n <= 0:
            return 0
        return min(math.ceil(n / self.config.entries_per_cluster), self.config.max_clusters)

    def cluster(self, entries: Sequence[VectorEntry]) -> List[MemoryCluster]:
        """
        Cluster ``entries`` by embedding.

        Args:
            entries: Entries to group (all must share one embedding dimension)

        Returns:
            Clusters with more than two members, in centroid order
        """
        n = len(entries)
        k = self.cluster_count(n)
        if k == 0 or n < k:
            return []

        matrix = np.asarray([e.embedding for e in entries], dtype=np.float64)
        unit = _unit_rows(matrix)

        picks = self._rng.choice(n, size=k, replace=False)
        centroids = matrix[picks].copy()

        for _ in range(self.config.iterations):
            sims = unit @ _unit_rows(centroids).T
            assignment = np.argmax(sims, axis=1)
            for i in range(k):
                members = matrix[assignment == i]
                if len(members):
                    centroids[i] = members.mean(axis=0)

        final_sims = unit @ _unit_rows(centroids).T
        clusters: List[MemoryCluster] = []
        for i in range(k):
            member_idx = np.nonzero(final_sims[:, i] > self.config.membership_threshold)[0]
            if len(member_idx) < self.config.min_cluster_size:
                continue
            members = [entries[j] for j in member_idx]
            clusters.append(
                MemoryCluster(
                    id=generate_timestamp_key(f"cluster-{i}"),
                    centroid=centroids[i].tolist(),
                    entries=[m.id for m in members],
                    theme=self.theme(members),
                    coherence_score=float(final_sims[member_idx, i].mean()),
                    last_updated=utcnow(),
                )
            )

        logger.info(f"Clustering formed {len(clusters)} clusters from {n} entries (k={k})")
        return clusters

    def theme(self, members: Sequence[VectorEntry]) -> str:
        counts: Counter[str] = Counter()
        for entry in members:
            counts.update(entry.tags)
        return " + ".join(tag for tag, _ in counts.most_common(self.config.theme_tag_count))


__all__ = [
    "ClusteringConfig",
    "ClusteringEngine",
    "common_tags",
]
