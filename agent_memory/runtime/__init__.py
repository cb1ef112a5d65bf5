"""
Runtime Module

WHAT: In-process runtime for agent memory (storage, retrieval, upkeep)
WHERE: agent_memory/runtime/ - library layer below the orchestration layer
WHO: Worker agents persisting experiences and querying shared knowledge
TIME: Query-time operations, consolidation driven externally

Memory Architecture:
- entries: Embedded experiential records owned by one agent
- graph: Relationship edges between entries, with derived communities
- clusters: Thematic groupings recomputed on every consolidation
- patterns: System-owned summaries synthesised from groups of entries

Boundary Notes:
- No network, file or database I/O inside the runtime
- Durable snapshots go through export_memories/import_memories
"""

__all__ = ["memory"]
