"""Metrics sinks receiving the finalized time series."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..errors import ExportError
from ..flows.types import EntityId
from ..metrics.timeseries import TimeSeriesRow, rows_to_dataframe

logger = logging.getLogger(__name__)


class CsvMetricsSink:
    """Write one CSV row per tick with per-entity metric columns."""

    def __init__(
        self,
        path: Union[str, Path],
        entity_ids: Optional[List[EntityId]] = None,
        float_format: str = "%.6f",
    ) -> None:
        self.path = Path(path)
        self.entity_ids = entity_ids
        self.float_format = float_format

    def write(self, rows: Sequence[TimeSeriesRow]) -> None:
        df = rows_to_dataframe(list(rows), self.entity_ids)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(self.path, index=False, float_format=self.float_format)
        except OSError as exc:
            raise ExportError(f"Failed to write {self.path}: {exc}") from exc
        logger.info("Simulation metrics exported to %s (%d rows)", self.path, len(df))


class InMemoryMetricsSink:
    def __init__(self) -> None:
        self.rows: List[TimeSeriesRow] = []
        self.writes = 0

    def write(self, rows: Sequence[TimeSeriesRow]) -> None:
        self.rows = list(rows)
        self.writes += 1


__all__ = ["CsvMetricsSink", "InMemoryMetricsSink"]
