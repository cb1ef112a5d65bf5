#!/usr/bin/env python3
"""
Consolidation Driver
====================

External wall-clock driver for a SemanticMemoryEngine. The engine holds no
timers; this script owns the schedule and the snapshot file.

Loads a JSON snapshot of memory records (if present), runs consolidation
whenever the configured interval has elapsed, and writes the surviving
records back after every run.

Usage:
    poetry run python scripts/run_consolidation_driver.py --snapshot memories.json --once
    poetry run python scripts/run_consolidation_driver.py --snapshot memories.json --poll 60
    MEMORY_ENGINE_CONSOLIDATION_INTERVAL_SECONDS=600 poetry run python scripts/run_consolidation_driver.py
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agent_memory.runtime.memory import (  # noqa: E402
    ConsoleTelemetryClient,
    EngineConfig,
    SemanticMemoryEngine,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


def load_snapshot(engine: SemanticMemoryEngine, path: Path) -> int:
    if not path.exists():
        logger.info(f"No snapshot at {path}; starting empty")
        return 0
    with path.open("r", encoding="utf-8") as f:
        records = json.load(f)
    imported = engine.import_memories(records)
    logger.info(f"Loaded {imported} memories from {path}")
    return imported


def save_snapshot(engine: SemanticMemoryEngine, path: Path) -> None:
    records = [entry.to_record() for entry in engine.export_memories()]
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(records, f)
    tmp.replace(path)
    logger.info(f"Wrote {len(records)} memories to {path}")


def run_once(engine: SemanticMemoryEngine, snapshot: Path | None) -> None:
    report = engine.run_scheduled_consolidation()
    if report is None:
        logger.info("Consolidation not due")
        return
    for line in report.insights:
        logger.info(f"  insight: {line}")
    for line in report.patterns_identified:
        logger.info(f"  pattern: {line}")
    if snapshot is not None:
        save_snapshot(engine, snapshot)


def main() -> int:
    ap = argparse.ArgumentParser(description="Run memory consolidation on a wall-clock schedule")
    ap.add_argument("--snapshot", type=Path, default=None, help="JSON file of memory records")
    ap.add_argument("--once", action="store_true", help="Run a single consolidation and exit")
    ap.add_argument("--poll", type=float, default=60.0, help="Seconds between due checks")
    ap.add_argument("--telemetry", action="store_true", help="Log telemetry spans")
    args = ap.parse_args()

    config = EngineConfig.from_env()
    telemetry = ConsoleTelemetryClient() if args.telemetry else None
    engine = SemanticMemoryEngine(config=config, telemetry=telemetry)
    if args.snapshot is not None:
        load_snapshot(engine, args.snapshot)

    if args.once:
        run_once(engine, args.snapshot)
        return 0

    logger.info(
        f"Driving consolidation every {config.scheduler.interval_seconds:.0f}s "
        f"(poll {args.poll:.0f}s)"
    )
    try:
        while True:
            run_once(engine, args.snapshot)
            time.sleep(args.poll)
    except KeyboardInterrupt:
        logger.info("Driver stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
