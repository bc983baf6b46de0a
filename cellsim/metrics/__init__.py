"""Per-entity metric computation for the telemetry tick.

This package provides:
- Per-interval throughput, latency, jitter and loss per entity
- The append-only per-tick time series and its tabular view
- Whole-run summary figures
"""

from .aggregator import FlowObservation, PerEntityAggregator, packet_loss_percent, throughput_kbps
from .summary import RunSummary, summarize_run
from .timeseries import EntityIntervalMetrics, TimeSeries, TimeSeriesRow, rows_to_dataframe

__all__ = [
    "FlowObservation",
    "PerEntityAggregator",
    "packet_loss_percent",
    "throughput_kbps",
    "RunSummary",
    "summarize_run",
    "EntityIntervalMetrics",
    "TimeSeries",
    "TimeSeriesRow",
    "rows_to_dataframe",
]
