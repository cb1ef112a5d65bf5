from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from agent_memory.runtime.memory.content import (
    DecisionContent,
    ErrorContent,
    FeedbackContent,
    InsightContent,
    RawContent,
    TaskContent,
    coerce_content,
)
from agent_memory.runtime.memory.models import (
    MemoryEntry,
    VectorEntry,
    categorize_memory_type,
    node_type_for,
)


@pytest.mark.parametrize(
    "memory_type,content,expected",
    [
        ("task", {"description": "ship it"}, TaskContent),
        ("decision", {"decision": "use sqlite", "alternatives": ["postgres"]}, DecisionContent),
        ("insight", {"insight": "caches hide bugs"}, InsightContent),
        ("error", {"message": "timeout"}, ErrorContent),
        ("feedback", {"feedback": "nice", "rating": 0.9}, FeedbackContent),
        ("task", {"unexpected": True}, RawContent),
        ("feedback", {"feedback": "bad rating", "rating": 7}, RawContent),
        ("insight", "plain string", RawContent),
        ("error", ["a", "b"], RawContent),
    ],
)
def test_coerce_content_picks_variant(memory_type, content, expected):
    assert isinstance(coerce_content(memory_type, content), expected)


def test_explicit_kind_wins_over_memory_type():
    content = coerce_content("task", {"kind": "decision", "decision": "rollback"})
    assert isinstance(content, DecisionContent)


def test_raw_fallback_keeps_string_context():
    content = coerce_content("task", {"notes": "n/a", "context": "sprint 4"})
    assert isinstance(content, RawContent)
    assert content.context == "sprint 4"
    assert '"notes": "n/a"' in content.as_text()


def test_variant_rendering():
    assert DecisionContent(decision="use sqlite", rationale="small data").as_text() == (
        "use sqlite\nbecause small data"
    )
    assert ErrorContent(message="timeout", resolution="retry").as_text() == "error: timeout\nresolved by: retry"
    assert RawContent().as_text() == ""


@pytest.mark.parametrize(
    "memory_type,tags,expected",
    [
        ("decision", ["skill"], "decision"),
        ("task", [], "experience"),
        ("insight", ["capability"], "skill"),
        ("feedback", ["strategy"], "pattern"),
        ("error", [], "knowledge"),
    ],
)
def test_categorize_memory_type(memory_type, tags, expected):
    assert categorize_memory_type(memory_type, tags) == expected


def test_node_type_mapping():
    assert node_type_for("experience") == "task"
    assert node_type_for("knowledge") == "concept"


def test_entries_dedupe_tags_and_normalise_timestamps():
    naive = datetime(2024, 1, 1, 12, 0, 0)
    entry = MemoryEntry(id="m", tags=["a", "b", "a", ""], created_at=naive, agent_id="x")
    assert entry.tags == ["a", "b"]
    assert entry.created_at.tzinfo == timezone.utc
    assert entry.created_at.hour == 12


def test_memory_entry_requires_an_id():
    with pytest.raises(PydanticValidationError):
        MemoryEntry(content="x", agent_id="a")
    with pytest.raises(PydanticValidationError):
        MemoryEntry(id="", content="x", agent_id="a")


def test_naive_now_is_read_as_utc():
    entry = VectorEntry(id="m", agent_id="a", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert entry.age_seconds(datetime(2024, 1, 2)) == pytest.approx(86400.0)
    entry.record_access(datetime(2024, 1, 3))
    assert entry.last_accessed == datetime(2024, 1, 3, tzinfo=timezone.utc)


def test_vector_entry_bounds_enforced():
    with pytest.raises(PydanticValidationError):
        VectorEntry(id="m", agent_id="a", importance=1.2)
    with pytest.raises(PydanticValidationError):
        VectorEntry(id="m", agent_id="")


def test_relationships_skip_self_and_duplicates():
    entry = VectorEntry(id="m", agent_id="a")
    entry.add_relationship("m")
    entry.add_relationship("n")
    entry.add_relationship("n")
    assert entry.relationships == ["n"]


def test_record_round_trip():
    entry = VectorEntry(
        id="m",
        content="rotate keys",
        payload=TaskContent(description="rotate keys"),
        embedding=[0.6, 0.8],
        agent_id="ops",
        tags=["security"],
        importance=0.7,
        relationships=["n"],
        access_count=3,
        project_id="p",
    )
    restored = VectorEntry.from_record(entry.to_record())

    assert restored == entry
    assert isinstance(restored.payload, TaskContent)
