from datetime import timedelta

import pytest

from agent_memory.runtime.memory.embedding import EmbeddingConfig, HashingEmbedder
from agent_memory.runtime.memory.errors import ValidationError
from agent_memory.runtime.memory.models import VectorEntry, utcnow
from agent_memory.runtime.memory.search import (
    SearchFilters,
    SimilaritySearchEngine,
    explain_match,
    recency_score,
)
from agent_memory.runtime.memory.vector_store import InMemoryVectorStore


def _engine():
    store = InMemoryVectorStore()
    embedder = HashingEmbedder(EmbeddingConfig(dimension=3))
    return store, SimilaritySearchEngine(store, embedder)


def _put(store, entry_id, embedding, **kwargs):
    kwargs.setdefault("agent_id", "a1")
    entry = VectorEntry(id=entry_id, content=entry_id, embedding=embedding, **kwargs)
    store.put(entry)
    return entry


def test_results_ranked_by_similarity_and_thresholded():
    store, search = _engine()
    _put(store, "exact", [1.0, 0.0, 0.0])
    _put(store, "close", [0.9, 0.1, 0.0])
    _put(store, "far", [0.0, 1.0, 0.0])

    results = search.search([1.0, 0.0, 0.0], threshold=0.5)

    assert [r.entry.id for r in results] == ["exact", "close"]
    assert all(r.similarity >= 0.5 for r in results)


def test_filters_are_exact_matches():
    store, search = _engine()
    _put(store, "a", [1.0, 0.0, 0.0], tags=["ops"], type="decision", project_id="p1")
    _put(store, "b", [1.0, 0.0, 0.0], agent_id="a2", tags=["ops"])
    _put(store, "c", [1.0, 0.0, 0.0], tags=["dev"], project_id="p2")

    def ids(filters):
        return {r.entry.id for r in search.search([1.0, 0.0, 0.0], filters=filters)}

    assert ids(SearchFilters(agent_id="a2")) == {"b"}
    assert ids(SearchFilters(tags=["ops", "missing"])) == {"a", "b"}
    assert ids(SearchFilters(type="decision")) == {"a"}
    assert ids(SearchFilters(project_id="p2")) == {"c"}
    assert ids(SearchFilters(exclude_ids=["a", "b"])) == {"c"}


def test_surfaced_entries_get_access_bump():
    store, search = _engine()
    hit = _put(store, "hit", [1.0, 0.0, 0.0])
    miss = _put(store, "miss", [0.0, 1.0, 0.0])

    search.search([1.0, 0.0, 0.0], threshold=0.5)
    assert hit.access_count == 1
    assert miss.access_count == 0

    search.search([1.0, 0.0, 0.0], threshold=0.5, record_access=False)
    assert hit.access_count == 1


def test_ties_broken_by_recency_then_importance():
    store, search = _engine()
    old = utcnow() - timedelta(days=10)
    _put(store, "old", [1.0, 0.0, 0.0], created_at=old, importance=0.9)
    _put(store, "new-low", [1.0, 0.0, 0.0], importance=0.1)

    results = search.search([1.0, 0.0, 0.0])
    assert [r.entry.id for r in results] == ["new-low", "old"]
    assert results[0].relevance > results[1].relevance


def test_empty_and_degenerate_queries_return_nothing():
    store, search = _engine()
    assert search.search([1.0, 0.0, 0.0]) == []

    _put(store, "a", [1.0, 0.0, 0.0])
    assert search.search([0.0, 0.0, 0.0]) == []
    assert search.search([1.0, 0.0, 0.0], limit=0) == []
    assert search.search([0.0, 0.0, 1.0], threshold=0.5) == []


def test_structurally_invalid_queries_raise():
    _, search = _engine()
    with pytest.raises(ValidationError):
        search.search([1.0, 0.0])
    with pytest.raises(ValidationError):
        search.search(42)  # type: ignore[arg-type]


def test_related_entries_resolved_through_store():
    store, search = _engine()
    _put(store, "a", [1.0, 0.0, 0.0], relationships=["b", "gone", "c", "d", "e"])
    for other in ("b", "c", "d", "e"):
        _put(store, other, [0.0, 1.0, 0.0])

    result = search.search([1.0, 0.0, 0.0], threshold=0.9)[0]
    assert [e.id for e in result.related_entries] == ["b", "c", "d"]


def test_search_by_tags_orders_by_importance():
    store, search = _engine()
    _put(store, "low", [1.0, 0.0, 0.0], tags=["infra"], importance=0.2)
    _put(store, "high", [1.0, 0.0, 0.0], tags=["infra", "db"], importance=0.9)
    _put(store, "other", [1.0, 0.0, 0.0], tags=["ui"])

    assert [e.id for e in search.search_by_tags(["infra"])] == ["high", "low"]
    assert [e.id for e in search.search_by_tags(["infra", "db"], match_all=True)] == ["high"]
    assert search.search_by_tags([]) == []


def test_recency_halves_every_half_life():
    now = utcnow()
    entry = VectorEntry(id="m", agent_id="a", created_at=now - timedelta(hours=24))
    assert recency_score(entry, 24.0, now) == pytest.approx(0.5)
    assert recency_score(entry, 48.0, now) == pytest.approx(0.5 ** 0.5)
    assert recency_score(entry, 24.0, now.replace(tzinfo=None)) == pytest.approx(0.5)


def test_explanation_mentions_matching_tags():
    entry = VectorEntry(id="m", agent_id="a", tags=["python", "asyncio"], importance=0.9)
    text = explain_match("python tips", entry, 0.95)
    assert "Very high semantic similarity" in text
    assert "High importance score" in text
    assert "Matches tags: python" in text
