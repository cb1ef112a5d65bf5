import logging

import pytest

from agent_memory.runtime.memory.telemetry import (
    ConsoleTelemetryClient,
    NoOpTelemetryClient,
    RecordingTelemetryClient,
)


def test_span_records_duration_and_attributes():
    client = RecordingTelemetryClient()
    with client.span("memory.search", attributes={"limit": 5}) as span:
        span.set_attribute("results", 2)

    ((name, attrs),) = client.spans
    assert name == "memory.search"
    assert attrs["limit"] == 5
    assert attrs["results"] == 2
    assert attrs["success"] is True
    assert attrs["duration_ms"] >= 0.0


def test_span_marks_failure_and_propagates():
    client = RecordingTelemetryClient()
    with pytest.raises(KeyError):
        with client.span("memory.store"):
            raise KeyError("missing")

    attrs = client.spans[0][1]
    assert attrs["success"] is False
    assert attrs["error"] == "KeyError"


def test_noop_client_discards_spans():
    with NoOpTelemetryClient().span("memory.consolidate") as span:
        span.set_attribute("clusters", 1)


def test_console_client_logs_spans(caplog):
    client = ConsoleTelemetryClient()
    with caplog.at_level(logging.INFO, logger="agent_memory.runtime.memory.telemetry"):
        with client.span("memory.share", attributes={"transferred": 1}):
            pass
    assert "[telemetry] memory.share" in caplog.text
