import pandas as pd
import pytest

from cellsim.errors import ExportError
from cellsim.export.csv_sink import CsvMetricsSink
from cellsim.handover.events import IntervalCounts
from cellsim.metrics.timeseries import EntityIntervalMetrics, TimeSeriesRow


def _rows():
    return [
        TimeSeriesRow(
            tick_index=1,
            timestamp=1.0,
            entities={
                0: EntityIntervalMetrics(8.0, 0.0, 20.0, 1.0),
                1: EntityIntervalMetrics(0.0, 0.0, 0.0, 0.0),
            },
            aggregate_throughput_kbps=8.0,
            aggregate_latency_ms=20.0,
        ),
        TimeSeriesRow(
            tick_index=2,
            timestamp=2.0,
            entities={0: EntityIntervalMetrics(16.0, 5.0, 30.0, 2.0)},
            aggregate_throughput_kbps=16.0,
            aggregate_latency_ms=30.0,
            handovers=IntervalCounts(started=1, succeeded=1),
        ),
    ]


def test_csv_contains_one_row_per_tick(tmp_path):
    path = tmp_path / "out" / "simulation_metrics.csv"
    CsvMetricsSink(path, entity_ids=[0, 1]).write(_rows())

    df = pd.read_csv(path)
    assert list(df.columns) == [
        "time_s",
        "ue0_throughput_kbps",
        "ue1_throughput_kbps",
        "avg_latency_ms",
        "ue0_packet_loss_pct",
        "ue1_packet_loss_pct",
        "ue0_jitter_ms",
        "ue1_jitter_ms",
        "ue0_latency_ms",
        "ue1_latency_ms",
        "aggregate_throughput_kbps",
        "handover_started",
        "handover_succeeded",
        "handover_failed",
    ]
    assert df["time_s"].tolist() == [1.0, 2.0]
    assert df["ue0_throughput_kbps"].tolist() == pytest.approx([8.0, 16.0])
    # entity 1 has no metrics in the second row
    assert df["ue1_throughput_kbps"].tolist() == [0.0, 0.0]
    assert df["handover_succeeded"].tolist() == [0, 1]


def test_entities_default_to_those_seen(tmp_path):
    path = tmp_path / "metrics.csv"
    CsvMetricsSink(path).write(_rows())
    assert "ue1_latency_ms" in pd.read_csv(path).columns


def test_unwritable_path_raises_export_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(ExportError):
        CsvMetricsSink(blocker / "metrics.csv").write(_rows())
