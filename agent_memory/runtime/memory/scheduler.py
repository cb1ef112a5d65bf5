"""
Consolidation Scheduler - Trigger policy and re-entrancy guard

WHAT: IDLE/RUNNING state machine deciding when consolidation runs
WHERE: agent_memory/runtime/memory/scheduler.py - consolidation subsystem
WHO: Engine (size-triggered runs) and external drivers (interval runs)
TIME: O(1) per check

The scheduler owns no timers. An external driver asks ``is_due(now)`` on its
own clock; the engine reports store size after each insert. While a run is in
progress any new trigger is a no-op returning the most recent report flagged
``in_progress``.

Boundary Notes:
- RUNNING -> IDLE on every exit path, including failures
- No CANCELLED state; a run always completes or raises
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .errors import ConcurrencyNoop
from .models import ConsolidationReport, resolve_now, utcnow

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(slots=True)
class SchedulerConfig:
    """Trigger policy for consolidation runs."""

    interval_seconds: float = 3600.0
    size_threshold: int = 1000  # Store size above which inserts trigger a run
    auto_consolidate: bool = False


class ConsolidationScheduler:
    """Guards consolidation against re-entry and tracks trigger state."""

    def __init__(self, config: SchedulerConfig | None = None) -> None:
        self.config = config or SchedulerConfig()
        self._state = SchedulerState.IDLE
        self._lock = threading.Lock()
        self.last_report: Optional[ConsolidationReport] = None
        self.last_run_at: Optional[datetime] = None
        self.runs_completed = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    # ---------------------- triggers ----------------------
    def is_due(self, now: Optional[datetime] = None) -> bool:
        """True when the configured interval has elapsed since the last run."""
        if self.is_running:
            return False
        if self.last_run_at is None:
            return True
        elapsed = (resolve_now(now) - self.last_run_at).total_seconds()
        return elapsed >= self.config.interval_seconds

    def should_run_for_size(self, store_size: int) -> bool:
        return (
            self.config.auto_consolidate
            and store_size > self.config.size_threshold
            and not self.is_running
        )

    # ---------------------- lifecycle ----------------------
    def begin(self) -> None:
        with self._lock:
            if self._state is SchedulerState.RUNNING:
                raise ConcurrencyNoop("consolidation already in progress")
            self._state = SchedulerState.RUNNING

    def finish(self, report: Optional[ConsolidationReport]) -> None:
        with self._lock:
            self._state = SchedulerState.IDLE
            if report is not None:
                self.last_report = report
                self.last_run_at = report.finished_at or utcnow()
                self.runs_completed += 1

    def in_progress_report(self) -> ConsolidationReport:
        """Report handed to callers that trigger while a run is active."""
        if self.last_report is None:
            return ConsolidationReport(in_progress=True, insights=["Consolidation in progress..."])
        return self.last_report.model_copy(
            update={
                "in_progress": True,
                "knowledge_graph_updated": False,
                "insights": list(self.last_report.insights) + ["Consolidation in progress..."],
            },
            deep=True,
        )

    def run(self, job: Callable[[], ConsolidationReport]) -> ConsolidationReport:
        """Execute ``job`` unless a run is already active."""
        try:
            self.begin()
        except ConcurrencyNoop:
            logger.info("Consolidation already in progress - returning latest summary")
            return self.in_progress_report()

        report: Optional[ConsolidationReport] = None
        try:
            report = job()
            return report
        finally:
            self.finish(report)


__all__ = [
    "SchedulerState",
    "SchedulerConfig",
    "ConsolidationScheduler",
]
