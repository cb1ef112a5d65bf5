"""
Knowledge Graph - Relationship graph over stored memories

WHAT: Node/edge maintenance, bounded path search, component communities
WHERE: agent_memory/runtime/memory/graph.py - structure layer
WHO: Engine store path, consolidation repair, path queries
TIME: add O(r), paths O(d^H) with H≤3, communities O(V+E)

Every stored entry projects to one node. Edges are undirected "related_to"
links registered on both endpoints. Communities are connected components of
more than two nodes and are always recomputed from scratch.

Boundary Notes:
- Disconnected or unknown endpoints -> [] paths (not an error)
- Deleting nodes may leave dangling edges until repair(); every consolidation
  run repairs before community detection
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .errors import InvariantViolation
from .models import (
    Community,
    EdgeType,
    GraphEdge,
    GraphNode,
    KnowledgeGraphSnapshot,
    VectorEntry,
    generate_timestamp_key,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GraphConfig:
    """Caps and constants for graph maintenance."""

    max_hops: int = 3  # Default path length cap in edges
    max_hops_ceiling: int = 6  # Upper bound for caller-supplied caps
    max_paths: int = 10  # Max paths returned per query
    edge_confidence: float = 0.8
    min_community_size: int = 3  # Smaller components are not communities


def edge_key(a: str, b: str) -> str:
    """Order-independent edge id for an undirected link."""
    first, second = sorted((a, b))
    return f"{first}--{second}"


class KnowledgeGraphBuilder:
    """Maintains nodes, undirected edges, and derived communities."""

    def __init__(self, config: GraphConfig | None = None) -> None:
        self.config = config or GraphConfig()
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: Dict[str, GraphEdge] = {}
        self.communities: Dict[str, Community] = {}

    # ------------------ construction ------------------
    def add_entry(self, entry: VectorEntry, weights: Optional[Mapping[str, float]] = None) -> GraphNode:
        """Create (or refresh) the node for ``entry`` and link its relationships.

        Relationship ids that do not have a node yet are skipped; the link is
        made later when that entry is added and names this one.
        """
        node = GraphNode.from_entry(entry)
        existing = self.nodes.get(entry.id)
        if existing is not None:
            node.connections = list(existing.connections)
        self.nodes[entry.id] = node

        for related_id in entry.relationships:
            if related_id in self.nodes:
                weight = (weights or {}).get(related_id, 1.0)
                self.link(entry.id, related_id, weight=weight)
        return node

    def link(
        self,
        source: str,
        target: str,
        *,
        weight: float = 1.0,
        edge_type: EdgeType = "related_to",
        metadata: Optional[Dict[str, object]] = None,
    ) -> Optional[GraphEdge]:
        """Create an undirected edge between two existing nodes (idempotent)."""
        if source == target or source not in self.nodes or target not in self.nodes:
            return None

        edge_id = edge_key(source, target)
        edge = self.edges.get(edge_id)
        if edge is not None:
            return edge

        edge = GraphEdge(
            id=edge_id,
            source=source,
            target=target,
            type=edge_type,
            weight=float(weight),
            confidence=self.config.edge_confidence,
            metadata={"created": utcnow().isoformat(), **(metadata or {})},
        )
        self.edges[edge_id] = edge
        self.nodes[source].connections.append(edge_id)
        self.nodes[target].connections.append(edge_id)
        return edge

    def remove_node(self, node_id: str) -> bool:
        """Drop a node; its edges dangle until repair()."""
        return self.nodes.pop(node_id, None) is not None

    # ------------------ integrity ------------------
    def dangling_edges(self) -> List[str]:
        return [
            edge_id
            for edge_id, edge in self.edges.items()
            if edge.source not in self.nodes or edge.target not in self.nodes
        ]

    def assert_integrity(self) -> None:
        """Raise InvariantViolation if any edge references a missing node."""
        bad = self.dangling_edges()
        if bad:
            raise InvariantViolation(f"{len(bad)} edges reference missing nodes", edge_ids=bad)

    def purge_dangling_edges(self) -> int:
        """Remove edges with a missing endpoint and stale connection ids."""
        bad = self.dangling_edges()
        for edge_id in bad:
            del self.edges[edge_id]
        for node in self.nodes.values():
            if any(edge_id not in self.edges for edge_id in node.connections):
                node.connections = [e for e in node.connections if e in self.edges]
        if bad:
            logger.info(f"Purged {len(bad)} dangling edges from knowledge graph")
        return len(bad)

    def repair(self) -> int:
        """Purge dangling edges, then rebuild communities from scratch."""
        purged = self.purge_dangling_edges()
        self.detect_communities()
        return purged

    # ------------------ traversal ------------------
    def neighbors(self, node_id: str) -> Iterator[Tuple[GraphEdge, str]]:
        node = self.nodes.get(node_id)
        if node is None:
            return
        for edge_id in node.connections:
            edge = self.edges.get(edge_id)
            if edge is not None:
                yield edge, edge.other(node_id)

    def find_paths(self, source_id: str, target_id: str, max_hops: Optional[int] = None) -> List[List[str]]:
        """
        Enumerate simple paths of at most ``max_hops`` edges, shortest first.

        Searches one hop count at a time and stops as soon as ``max_paths``
        paths are collected; ``max_hops`` is clamped to ``max_hops_ceiling``.

        Args:
            source_id: Start node id
            target_id: End node id
            max_hops: Path length cap (default from config)

        Returns:
            Up to ``max_paths`` node-id paths; [] when unreachable
        """
        max_hops = self.config.max_hops if max_hops is None else max_hops
        max_hops = min(max_hops, self.config.max_hops_ceiling)
        if source_id not in self.nodes or target_id not in self.nodes:
            return []
        if source_id == target_id:
            return [[source_id]]

        limit = self.config.max_paths
        paths: List[List[str]] = []
        on_path: Set[str] = set()

        def dfs(current: str, path: List[str], remaining: int) -> None:
            if len(paths) >= limit:
                return
            if remaining == 0:
                if current == target_id:
                    paths.append(path + [current])
                return
            if current == target_id:
                return
            on_path.add(current)
            for _, neighbor in self.neighbors(current):
                if neighbor not in on_path:
                    dfs(neighbor, path + [current], remaining - 1)
            on_path.discard(current)

        for hops in range(1, max_hops + 1):
            dfs(source_id, [], hops)
            if len(paths) >= limit:
                break
        return paths[:limit]

    # ------------------ communities ------------------
    def _component(self, start: str, visited: Set[str]) -> List[str]:
        component: List[str] = []
        stack = [start]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            component.append(node_id)
            for _, neighbor in self.neighbors(node_id):
                if neighbor not in visited and neighbor in self.nodes:
                    stack.append(neighbor)
        return component

    def detect_communities(self) -> Dict[str, Community]:
        """Connected components with more than two members, fully recomputed."""
        visited: Set[str] = set()
        communities: Dict[str, Community] = {}

        for node_id in self.nodes:
            if node_id in visited:
                continue
            members = self._component(node_id, visited)
            if len(members) < self.config.min_community_size:
                continue
            community = Community(
                id=generate_timestamp_key("community"),
                nodes=members,
                topic=self._community_topic(members),
                coherence=self._community_coherence(members),
                importance=self._community_importance(members),
            )
            communities[community.id] = community

        self.communities = communities
        logger.debug(f"Detected {len(communities)} communities over {len(self.nodes)} nodes")
        return communities

    def _community_topic(self, members: List[str]) -> str:
        counts: Counter[str] = Counter()
        for node_id in members:
            counts.update(self.nodes[node_id].properties.get("tags", []))
        if not counts:
            return "Mixed Topics"
        return counts.most_common(1)[0][0]

    def _community_coherence(self, members: List[str]) -> float:
        member_set = set(members)
        total = 0
        internal = 0
        for node_id in members:
            for _, neighbor in self.neighbors(node_id):
                total += 1
                if neighbor in member_set:
                    internal += 1
        return internal / total if total else 0.0

    def _community_importance(self, members: List[str]) -> float:
        values = [float(self.nodes[n].properties.get("importance", 0.0)) for n in members]
        return sum(values) / len(values) if values else 0.0

    # ------------------ views ------------------
    def snapshot(self) -> KnowledgeGraphSnapshot:
        """Deep copy safe to hand to callers."""
        return KnowledgeGraphSnapshot(
            nodes={k: v.model_copy(deep=True) for k, v in self.nodes.items()},
            edges={k: v.model_copy(deep=True) for k, v in self.edges.items()},
            communities={k: v.model_copy(deep=True) for k, v in self.communities.items()},
        )


__all__ = [
    "GraphConfig",
    "KnowledgeGraphBuilder",
    "edge_key",
]
