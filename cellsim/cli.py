#!/usr/bin/env python3
"""Command line entry point.

Usage:
    # Replay a recorded trace and export per-tick metrics
    python -m cellsim replay trace.json --output simulation_metrics.csv

    # Override settings (environment variables CELLSIM_* work as well)
    python -m cellsim replay trace.json --entity-count 3 --threshold 250 --dwell 2
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from .core.config import SimulationSettings
from .errors import ConfigurationError
from .export.csv_sink import CsvMetricsSink
from .logging_config import bind_simulated_clock, configure_logging
from .simulation.replay import SimulatedHandoverNetwork, TraceReplay
from .simulation.runtime import TelemetryHandoverRuntime
from .simulation.scheduler import SimulationScheduler

logger = logging.getLogger(__name__)

_OVERRIDES = {
    "entity_count": "entity_count",
    "base_port": "base_port",
    "tick_interval": "tick_interval_seconds",
    "handover_interval": "handover_interval_seconds",
    "threshold": "distance_threshold_meters",
    "duration": "simulation_duration_seconds",
    "dwell": "min_dwell_seconds",
    "handover_delay": "handover_delay_seconds",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellsim",
        description="Telemetry aggregation and handover decisions for cellular scenarios",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a recorded JSON trace")
    replay.add_argument("trace", help="Path to the JSON trace")
    replay.add_argument("--output", "-o", help="CSV file for per-tick metrics")
    replay.add_argument("--summary", help="Write the run summary as JSON to this file")
    replay.add_argument("--entity-count", type=int)
    replay.add_argument("--base-port", type=int)
    replay.add_argument("--tick-interval", type=float, help="Telemetry period (s)")
    replay.add_argument("--handover-interval", type=float, help="Handover period (s)")
    replay.add_argument("--threshold", type=float, help="Distance threshold (m)")
    replay.add_argument("--duration", type=float, help="Simulated duration (s)")
    replay.add_argument("--dwell", type=float, help="Minimum dwell time (s)")
    replay.add_argument("--handover-delay", type=float, help="Requested handover delay (s)")
    return parser


def run_replay(args: argparse.Namespace) -> int:
    overrides = {
        field: getattr(args, opt)
        for opt, field in _OVERRIDES.items()
        if getattr(args, opt) is not None
    }
    try:
        settings = SimulationSettings(**overrides)
    except ValidationError as exc:
        logger.error("Invalid settings: %s", exc)
        return 2

    scheduler = SimulationScheduler()
    bind_simulated_clock(scheduler.now)
    try:
        trace = TraceReplay.from_file(args.trace, scheduler.now)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.error("Cannot load trace %s: %s", args.trace, exc)
        return 1

    network = SimulatedHandoverNetwork(scheduler, known_cells=trace.cells)
    sink = CsvMetricsSink(args.output) if args.output else None
    runtime = TelemetryHandoverRuntime(
        settings,
        trace,
        trace,
        network,
        scheduler=scheduler,
        metrics_sink=sink,
    )
    network.bind(runtime.event_log)

    try:
        rows = runtime.run(cell_ids=sorted(trace.cells))
    except ConfigurationError as exc:
        logger.error("Invalid scenario in %s: %s", args.trace, exc)
        return 2
    summary = runtime.summary.as_dict() if runtime.summary else {}
    logger.info("Replayed %d telemetry ticks", len(rows))

    if args.summary:
        with open(args.summary, "w") as f:
            json.dump(summary, f, indent=2)
    else:
        print(json.dumps(summary, indent=2))

    return 1 if runtime.export_errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level)
    if args.command == "replay":
        return run_replay(args)
    return 2


if __name__ == "__main__":
    sys.exit(main())
