import pytest

from agent_memory.runtime.memory.engine import SemanticMemoryEngine
from agent_memory.runtime.memory.errors import NotFoundError, ValidationError
from agent_memory.runtime.memory.models import MemoryEntry


def _store(engine, entry_id, content, tags, relevance, agent_id="agentA"):
    return engine.store_memory(
        MemoryEntry(id=entry_id, type="insight", content=content, tags=tags, relevance_score=relevance),
        agent_id,
    )


def test_share_skips_private_entries():
    engine = SemanticMemoryEngine()
    _store(engine, "public", "cats", ["cats"], 0.9)
    _store(engine, "secret", "cats", ["cats", "private"], 0.9)

    transferred = engine.share_knowledge("agentA", "agentB", "cats")

    assert len(transferred) == 1
    copy = transferred[0]
    source = engine.get_entry("public")
    assert copy.agent_id == "agentB"
    assert copy.relationships == ["public"]
    assert copy.importance == pytest.approx(0.9 * 0.8)
    assert copy.importance <= source.importance
    assert copy.embedding == source.embedding
    assert copy.type == "knowledge"
    assert "transferred_knowledge" in copy.tags
    assert copy.content.startswith("[Transferred from agentA to agentB]")
    assert copy.context.startswith("Transferred from agentA: ")
    assert copy.id in source.relationships
    assert copy.id in engine.store
    assert copy.id in engine.graph.nodes
    assert all("private" not in e.tags for e in engine.export_memories("agentB"))


def test_repeated_share_does_not_duplicate_copies():
    engine = SemanticMemoryEngine()
    _store(engine, "public", "cats", ["cats"], 0.9)

    first = engine.share_knowledge("agentA", "agentB", "cats")
    second = engine.share_knowledge("agentA", "agentB", "cats")

    assert len(first) == 1
    assert second == []
    assert len(engine.export_memories("agentB")) == 1
    assert len(engine.share_knowledge("agentA", "agentC", "cats")) == 1


def test_share_requires_importance_and_similarity():
    engine = SemanticMemoryEngine()
    _store(engine, "weak", "cats", ["cats"], 0.7)
    _store(engine, "off-topic", "quarterly revenue forecast", ["finance"], 0.95)

    assert engine.share_knowledge("agentA", "agentB", "cats") == []
    assert engine.export_memories("agentB") == []


def test_share_only_reads_source_agent():
    engine = SemanticMemoryEngine()
    _store(engine, "other", "cats", ["cats"], 0.9, agent_id="agentC")

    assert engine.share_knowledge("agentA", "agentB", "cats") == []


def test_share_requires_agent_ids():
    engine = SemanticMemoryEngine()
    with pytest.raises(ValidationError):
        engine.share_knowledge("", "agentB", "cats")


def test_learn_pattern_links_members_both_ways():
    engine = SemanticMemoryEngine()
    ids = [
        _store(engine, "p1", "retry failed upload", ["retry", "upload"], 0.5),
        _store(engine, "p2", "retry timed out request", ["retry", "network"], 0.6),
        _store(engine, "p3", "retry flaky test", ["retry", "ci"], 0.7),
    ]

    pattern = engine.learn_pattern(ids, "retry-strategy")

    assert pattern.agent_id == "system"
    assert pattern.type == "pattern"
    assert pattern.relationships == ids
    assert pattern.importance == pytest.approx(min(0.6 * 1.2, 1.0))
    assert pattern.tags[:3] == ["learned_pattern", "retry-strategy", "retry"]
    assert pattern.content == 'Pattern "retry-strategy" identified from 3 experiences: retry, upload, network, ci'
    assert pattern.context == "Pattern learned from 3 experiences"
    assert len(pattern.embedding) == engine.embedder.dimension
    for entry_id in ids:
        assert pattern.id in engine.get_entry(entry_id).relationships
    assert engine.find_knowledge_paths(ids[0], pattern.id)[0] == [ids[0], pattern.id]


def test_learn_pattern_importance_is_capped():
    engine = SemanticMemoryEngine()
    ids = [_store(engine, f"m{i}", f"note {i}", ["x"], 0.95) for i in range(2)]
    assert engine.learn_pattern(ids, "cap").importance == pytest.approx(1.0)


def test_learn_pattern_rejects_bad_input():
    engine = SemanticMemoryEngine()
    with pytest.raises(ValidationError):
        engine.learn_pattern([], "empty")
    with pytest.raises(NotFoundError):
        engine.learn_pattern(["missing"], "ghost")
