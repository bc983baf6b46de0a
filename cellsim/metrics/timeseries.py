"""Append-only per-tick time series of entity metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import pandas as pd

from ..errors import TimeSeriesFinalizedError
from ..flows.types import EntityId
from ..handover.events import IntervalCounts


@dataclass(frozen=True)
class EntityIntervalMetrics:
    """QoS of one entity over one telemetry interval.

    Attributes
    ----------
    throughput_kbps:
        Received kilobits per second over the interval.
    packet_loss_percent:
        Loss of the entity's representative flow from cumulative counters.
    mean_latency_ms:
        Mean one-way delay of packets received during the interval.
    mean_jitter_ms:
        Mean delay variation of packets received during the interval.
    """

    throughput_kbps: float = 0.0
    packet_loss_percent: float = 0.0
    mean_latency_ms: float = 0.0
    mean_jitter_ms: float = 0.0


@dataclass(frozen=True)
class TimeSeriesRow:
    tick_index: int
    timestamp: float
    entities: Dict[EntityId, EntityIntervalMetrics]
    aggregate_throughput_kbps: float = 0.0
    aggregate_latency_ms: float = 0.0
    handovers: IntervalCounts = field(default_factory=IntervalCounts)


class TimeSeries:
    """Ordered rows, one per telemetry tick, frozen by :meth:`finalize`."""

    def __init__(self) -> None:
        self._rows: List[TimeSeriesRow] = []
        self._finalized = False

    def append(self, row: TimeSeriesRow) -> None:
        if self._finalized:
            raise TimeSeriesFinalizedError("time series already finalized")
        if self._rows and row.tick_index <= self._rows[-1].tick_index:
            raise ValueError(
                f"tick index {row.tick_index} not after {self._rows[-1].tick_index}"
            )
        self._rows.append(row)

    def finalize(self) -> List[TimeSeriesRow]:
        self._finalized = True
        return list(self._rows)

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def rows(self) -> List[TimeSeriesRow]:
        return list(self._rows)

    def last(self) -> Optional[TimeSeriesRow]:
        return self._rows[-1] if self._rows else None

    def series_for(self, entity_id: EntityId, metric: str) -> List[float]:
        """Values of ``metric`` for ``entity_id`` across all rows."""
        return [
            getattr(row.entities.get(entity_id, EntityIntervalMetrics()), metric)
            for row in self._rows
        ]

    def to_dataframe(self, entity_ids: Optional[List[EntityId]] = None) -> pd.DataFrame:
        """Tabular view with one row per tick and one column per entity metric."""
        return rows_to_dataframe(self._rows, entity_ids)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[TimeSeriesRow]:
        return iter(list(self._rows))


def rows_to_dataframe(
    rows: List[TimeSeriesRow], entity_ids: Optional[List[EntityId]] = None
) -> pd.DataFrame:
    if entity_ids is None:
        entity_ids = sorted({eid for row in rows for eid in row.entities})

    records = []
    for row in rows:
        record: Dict[str, float] = {"time_s": row.timestamp}
        metrics_by_entity = {
            eid: row.entities.get(eid, EntityIntervalMetrics()) for eid in entity_ids
        }
        for eid, m in metrics_by_entity.items():
            record[f"ue{eid}_throughput_kbps"] = m.throughput_kbps
        record["avg_latency_ms"] = row.aggregate_latency_ms
        for eid, m in metrics_by_entity.items():
            record[f"ue{eid}_packet_loss_pct"] = m.packet_loss_percent
        for eid, m in metrics_by_entity.items():
            record[f"ue{eid}_jitter_ms"] = m.mean_jitter_ms
        for eid, m in metrics_by_entity.items():
            record[f"ue{eid}_latency_ms"] = m.mean_latency_ms
        record["aggregate_throughput_kbps"] = row.aggregate_throughput_kbps
        record["handover_started"] = row.handovers.started
        record["handover_succeeded"] = row.handovers.succeeded
        record["handover_failed"] = row.handovers.failed
        records.append(record)

    df = pd.DataFrame.from_records(records)
    if not df.empty:
        df.index = pd.RangeIndex(start=1, stop=len(df) + 1, name="tick")
    return df


__all__ = ["EntityIntervalMetrics", "TimeSeriesRow", "TimeSeries", "rows_to_dataframe"]
