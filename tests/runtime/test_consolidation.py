from datetime import timedelta

import pytest

from agent_memory.runtime.memory.clustering import ClusteringConfig, ClusteringEngine
from agent_memory.runtime.memory.consolidation import ConsolidationEngine
from agent_memory.runtime.memory.graph import KnowledgeGraphBuilder
from agent_memory.runtime.memory.models import MemoryCluster, VectorEntry, utcnow
from agent_memory.runtime.memory.scheduler import ConsolidationScheduler, SchedulerState
from agent_memory.runtime.memory.vector_store import InMemoryVectorStore


class ExplodingClustering(ClusteringEngine):
    def cluster(self, entries):
        raise RuntimeError("boom")


def _setup(max_memory_size=50_000, clustering=None):
    store = InMemoryVectorStore(max_memory_size=max_memory_size)
    graph = KnowledgeGraphBuilder()
    engine = ConsolidationEngine(
        store,
        graph,
        clustering=clustering or ClusteringEngine(ClusteringConfig(seed=11)),
        scheduler=ConsolidationScheduler(),
    )
    return store, graph, engine


def _add(store, graph, entry_id, *, age_days=0.0, access_count=0, importance=0.5, tags=("t",),
         agent_id="a1", relationships=()):
    entry = VectorEntry(
        id=entry_id,
        content=entry_id,
        embedding=[1.0, 0.0, 0.0],
        agent_id=agent_id,
        created_at=utcnow() - timedelta(days=age_days),
        tags=list(tags),
        importance=importance,
        access_count=access_count,
        relationships=list(relationships),
    )
    store.put(entry)
    graph.add_entry(entry)
    return entry


@pytest.mark.parametrize(
    "age_days,access_count,importance,obsolete",
    [
        (91, 0, 0.1, True),
        (91, 5, 0.1, False),
        (91, 0, 0.9, False),
        (30, 0, 0.1, False),
        (91, 0, 0.3, False),
    ],
)
def test_obsolescence_requires_every_condition(age_days, access_count, importance, obsolete):
    store, graph, engine = _setup()
    entry = _add(store, graph, "m", age_days=age_days, access_count=access_count, importance=importance)
    assert engine.is_obsolete(entry, utcnow()) is obsolete


def test_sweep_removes_entries_and_repairs_graph():
    store, graph, engine = _setup()
    _add(store, graph, "keep-1")
    _add(store, graph, "stale", age_days=120, importance=0.05, relationships=["keep-1"])
    _add(store, graph, "keep-2", relationships=["stale"])
    store.get("keep-1").add_relationship("stale")

    report = engine.consolidate()

    assert report.obsolete_entries_removed == 1
    assert report.knowledge_graph_updated is True
    assert "stale" not in store
    assert "stale" not in graph.nodes
    graph.assert_integrity()
    assert "stale" not in store.get("keep-1").relationships
    assert "stale" not in store.get("keep-2").relationships


def test_capacity_eviction_drops_least_retained():
    store, graph, engine = _setup(max_memory_size=3)
    for i, importance in enumerate([0.9, 0.1, 0.8, 0.2, 0.7]):
        _add(store, graph, f"m{i}", importance=importance)

    report = engine.consolidate()

    assert report.capacity_evictions == 2
    assert store.size() == 3
    assert {e.id for e in store.iter_entries()} == {"m0", "m2", "m4"}
    graph.assert_integrity()


def test_report_counts_clusters_patterns_and_insights():
    store, graph, engine = _setup()
    for i in range(6):
        _add(store, graph, f"a{i}", tags=("db", "perf", "index"), agent_id="alice")
    _add(store, graph, "b0", tags=("db",), agent_id="bob")

    report = engine.consolidate()

    assert report.clusters_formed == 1
    assert "Common theme: db, perf, index" in report.patterns_identified
    assert any(p.startswith("Sequential learning pattern in db") for p in report.patterns_identified)
    assert "Most active agent: alice with 6 memories" in report.insights
    assert "Most common topic: db (7 occurrences)" in report.insights
    assert "Average cluster size: 7 memories" in report.insights
    assert report.in_progress is False
    assert len(engine.clusters) == 1


def test_cluster_patterns_need_enough_members_and_tags():
    store, graph, engine = _setup()
    for i in range(3):
        _add(store, graph, f"m{i}", tags=("x", "y"))
    cluster = MemoryCluster(id="c", centroid=[1.0, 0.0, 0.0], entries=["m0", "m1", "m2"],
                            theme="x + y", coherence_score=1.0)

    assert engine.identify_cluster_patterns(cluster) == []


def test_concurrent_trigger_returns_in_progress_report():
    store, graph, engine = _setup()
    _add(store, graph, "m0")
    first = engine.consolidate()

    engine.scheduler.begin()
    try:
        report = engine.consolidate()
    finally:
        engine.scheduler.finish(None)

    assert report.in_progress is True
    assert report.knowledge_graph_updated is False
    assert report.insights[-1] == "Consolidation in progress..."
    assert report.insights[:-1] == first.insights
    assert engine.scheduler.runs_completed == 1


def test_scheduler_returns_to_idle_after_failure():
    store, graph, engine = _setup(clustering=ExplodingClustering())
    _add(store, graph, "m0")

    with pytest.raises(RuntimeError):
        engine.consolidate()
    assert engine.scheduler.state is SchedulerState.IDLE
    assert engine.scheduler.runs_completed == 0


def test_empty_store_consolidates_cleanly():
    _, _, engine = _setup()
    report = engine.consolidate()
    assert report.clusters_formed == 0
    assert report.insights == []
    assert report.knowledge_graph_updated is True
