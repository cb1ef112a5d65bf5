import pytest

from agent_memory.runtime.memory.errors import NotFoundError
from agent_memory.runtime.memory.models import VectorEntry
from agent_memory.runtime.memory.vector_store import InMemoryVectorStore


def _entry(entry_id: str, content: str = "note") -> VectorEntry:
    return VectorEntry(id=entry_id, content=content, embedding=[1.0, 0.0], agent_id="a1")


def test_put_overwrites_by_id():
    store = InMemoryVectorStore()
    assert store.put(_entry("m1", "first")) is True
    assert store.put(_entry("m1", "second")) is False

    assert store.size() == 1
    assert store.get("m1").content == "second"


def test_get_delete_and_require():
    store = InMemoryVectorStore()
    store.put(_entry("m1"))

    assert "m1" in store
    assert store.delete("m1") is True
    assert store.delete("m1") is False
    assert store.get("m1") is None
    with pytest.raises(NotFoundError) as excinfo:
        store.require("m1")
    assert "m1" in str(excinfo.value)
    assert isinstance(excinfo.value, KeyError)


def test_iteration_tolerates_deletes():
    store = InMemoryVectorStore()
    for i in range(5):
        store.put(_entry(f"m{i}"))

    for entry in store.iter_entries():
        store.delete(entry.id)
    assert len(store) == 0


def test_soft_capacity_can_be_exceeded():
    store = InMemoryVectorStore(max_memory_size=2)
    for i in range(4):
        store.put(_entry(f"m{i}"))

    assert store.size() == 4
    assert store.over_capacity() == 2


def test_entries_filtered_by_agent():
    store = InMemoryVectorStore()
    store.put(_entry("m1"))
    store.put(VectorEntry(id="m2", embedding=[0.0, 1.0], agent_id="a2"))

    assert [e.id for e in store.entries("a2")] == ["m2"]
    assert len(store.entries()) == 2
