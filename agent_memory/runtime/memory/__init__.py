"""
Semantic Memory System - Vector entries, knowledge graph & consolidation

WHAT: Local library for shared agent memory (no network services)
WHERE: agent_memory/runtime/memory/ - runtime subsystem
WHO: Orchestration layer holding one SemanticMemoryEngine per process
TIME: Search O(n·D); consolidation dominated by k-means (k ≤ 50)

Entry Types:
- experience: Completed tasks and their outcomes
- knowledge: Insights, errors, feedback, transferred knowledge
- decision: Choices with rationale
- skill: Capabilities an agent demonstrated
- pattern: Synthesised summaries across many entries

Operations (SemanticMemoryEngine):
- store_memory(entry, agent_id): Embed, link, persist
- search_memories(query, agent_id, limit): Ranked semantic search
- share_knowledge(source, target, topic): Curated cross-agent copies
- learn_pattern(entries, name): Pattern entry from a group
- consolidate_memories(): Cluster, prune, repair, summarise
- get_knowledge_graph() / find_knowledge_paths(a, b): Graph views
- get_memory_stats(): Counts
- export_memories() / import_memories(entries): Persistence hooks

Boundary Notes:
- Engine instances are explicit; there is no module-level singleton
- Consolidation timers live with the caller (see consolidation_due)
"""

from .clustering import ClusteringConfig, ClusteringEngine  # noqa: F401
from .consolidation import ConsolidationConfig, ConsolidationEngine  # noqa: F401
from .content import (  # noqa: F401
    DecisionContent,
    ErrorContent,
    FeedbackContent,
    InsightContent,
    MemoryContent,
    RawContent,
    TaskContent,
)
from .embedding import (  # noqa: F401
    Embedder,
    EmbeddingConfig,
    HashingEmbedder,
    cosine_similarity,
)
from .engine import EngineConfig, SemanticMemoryEngine  # noqa: F401
from .errors import (  # noqa: F401
    ConcurrencyNoop,
    InvariantViolation,
    MemoryEngineError,
    NotFoundError,
    ValidationError,
)
from .graph import GraphConfig, KnowledgeGraphBuilder  # noqa: F401
from .models import (  # noqa: F401
    Community,
    ConsolidationReport,
    GraphEdge,
    GraphNode,
    KnowledgeGraphSnapshot,
    MemoryCluster,
    MemoryEntry,
    SearchResult,
    VectorEntry,
)
from .scheduler import ConsolidationScheduler, SchedulerConfig, SchedulerState  # noqa: F401
from .search import SearchConfig, SearchFilters, SimilaritySearchEngine  # noqa: F401
from .telemetry import (  # noqa: F401
    ConsoleTelemetryClient,
    NoOpTelemetryClient,
    RecordingTelemetryClient,
    TelemetryClient,
    TelemetrySpan,
)
from .transfer import KnowledgeTransferService, TransferConfig  # noqa: F401
from .vector_store import InMemoryVectorStore, VectorStore  # noqa: F401

__all__ = [
    "SemanticMemoryEngine",
    "EngineConfig",
    "Embedder",
    "EmbeddingConfig",
    "HashingEmbedder",
    "cosine_similarity",
    "VectorStore",
    "InMemoryVectorStore",
    "SearchConfig",
    "SearchFilters",
    "SimilaritySearchEngine",
    "GraphConfig",
    "KnowledgeGraphBuilder",
    "ClusteringConfig",
    "ClusteringEngine",
    "ConsolidationConfig",
    "ConsolidationEngine",
    "ConsolidationScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "KnowledgeTransferService",
    "TransferConfig",
    "MemoryEntry",
    "VectorEntry",
    "GraphNode",
    "GraphEdge",
    "Community",
    "MemoryCluster",
    "ConsolidationReport",
    "SearchResult",
    "KnowledgeGraphSnapshot",
    "MemoryContent",
    "TaskContent",
    "DecisionContent",
    "InsightContent",
    "ErrorContent",
    "FeedbackContent",
    "RawContent",
    "MemoryEngineError",
    "ValidationError",
    "NotFoundError",
    "ConcurrencyNoop",
    "InvariantViolation",
    "TelemetryClient",
    "TelemetrySpan",
    "NoOpTelemetryClient",
    "ConsoleTelemetryClient",
    "RecordingTelemetryClient",
]
