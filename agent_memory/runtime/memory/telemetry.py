"""
Telemetry - Span timing for memory engine operations

WHAT: Context-managed spans around store/search/share/consolidate calls
WHERE: agent_memory/runtime/memory/telemetry.py - observability layer
WHO: SemanticMemoryEngine public operations
TIME: Zero-overhead sink by default, <0.1ms per span otherwise

Span names emitted by the engine:
- memory.store        (agent_id, entry_id, relations)
- memory.search       (agent_id, limit, results)
- memory.share        (source_agent, target_agent, transferred)
- memory.consolidate  (clusters, removed, in_progress)

Boundary Notes:
- Spans record success=False when the wrapped block raises; the exception
  still propagates
- Sinks must not raise back into the engine
"""

from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TelemetrySpan(AbstractContextManager["TelemetrySpan"]):
    """Times one engine operation and forwards its attributes on exit."""

    def __init__(
        self,
        client: "TelemetryClient",
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._client = client
        self.name = name
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self._start: float = 0.0

    def __enter__(self) -> "TelemetrySpan":
        self._start = time.perf_counter()
        return self

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def __exit__(self, exc_type, exc, exc_tb) -> bool:
        self.attributes.setdefault("success", exc is None)
        if exc is not None:
            self.attributes.setdefault("error", type(exc).__name__)
        self.attributes["duration_ms"] = (time.perf_counter() - self._start) * 1000.0
        self._client.emit_span(self.name, self.attributes)
        return False


class TelemetryClient:
    """Base telemetry client; override `emit_span` for custom sinks."""

    def span(
        self,
        name: str,
        *,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> TelemetrySpan:
        return TelemetrySpan(self, name, attributes)

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class NoOpTelemetryClient(TelemetryClient):
    """Discards spans."""

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:  # noqa: D401 - intentionally empty
        pass


class ConsoleTelemetryClient(TelemetryClient):
    """Writes spans to the module logger for debugging."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        payload = {k: attributes[k] for k in sorted(attributes)}
        logger.log(self.level, f"[telemetry] {name}: {payload}")


@dataclass(slots=True)
class RecordingTelemetryClient(TelemetryClient):
    """Keeps every span in memory; used by drivers and tests to inspect runs."""

    spans: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def emit_span(self, name: str, attributes: Dict[str, Any]) -> None:
        self.spans.append((name, dict(attributes)))

    def names(self) -> List[str]:
        return [name for name, _ in self.spans]


__all__ = [
    "TelemetrySpan",
    "TelemetryClient",
    "NoOpTelemetryClient",
    "ConsoleTelemetryClient",
    "RecordingTelemetryClient",
]
