"""Whole-run figures computed once the simulation has stopped."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, Optional

from ..flows.types import EntityId, FlowCounters
from ..handover.events import HandoverEventLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunSummary:
    flow_count: int = 0
    avg_throughput_kbps: float = 0.0
    avg_latency_ms: float = 0.0
    packet_loss_percent: float = 0.0
    avg_jitter_ms: float = 0.0
    handovers_started: int = 0
    handovers_succeeded: int = 0
    handovers_failed: int = 0
    pingpong_handovers: int = 0
    handovers_per_entity: Dict[EntityId, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return asdict(self)


def summarize_run(
    final_counters: Iterable[FlowCounters],
    event_log: Optional[HandoverEventLog] = None,
    *,
    pingpong_window_seconds: float = 10.0,
) -> RunSummary:
    """Summarize the final cumulative counters of every attributed flow.

    Throughput is averaged over flows, each flow measured over its own active
    period (first transmission to last reception). Latency and jitter are
    packet-weighted across flows; loss is pooled over all transmitted packets.
    """
    flow_count = 0
    throughput_sum = 0.0
    latency_sum = 0.0
    jitter_sum = 0.0
    rx_packets = 0
    jitter_samples = 0
    tx_packets = 0

    for counters in final_counters:
        flow_count += 1
        duration = counters.last_rx_time - counters.first_tx_time
        if duration > 0:
            throughput_sum += counters.rx_bytes * 8.0 / 1000.0 / duration
        if counters.rx_packets > 0:
            latency_sum += counters.delay_sum
            rx_packets += counters.rx_packets
            if counters.rx_packets > 1:
                jitter_sum += counters.jitter_sum
                jitter_samples += counters.rx_packets - 1
        tx_packets += counters.tx_packets

    loss = 0.0
    if tx_packets > 0:
        loss = max(tx_packets - rx_packets, 0) / tx_packets * 100.0

    ho_kwargs = {}
    if event_log is not None:
        totals = event_log.totals()
        ho_kwargs = {
            "handovers_started": totals.started,
            "handovers_succeeded": totals.succeeded,
            "handovers_failed": totals.failed,
            "pingpong_handovers": event_log.pingpong_count(pingpong_window_seconds),
            "handovers_per_entity": event_log.successes_per_entity(),
        }

    summary = RunSummary(
        flow_count=flow_count,
        avg_throughput_kbps=throughput_sum / flow_count if flow_count else 0.0,
        avg_latency_ms=latency_sum / rx_packets * 1000.0 if rx_packets else 0.0,
        packet_loss_percent=loss,
        avg_jitter_ms=jitter_sum / jitter_samples * 1000.0 if jitter_samples else 0.0,
        **ho_kwargs,
    )
    logger.info("===== FINAL METRICS =====")
    logger.info("Avg Throughput (Kbps) : %s", summary.avg_throughput_kbps)
    logger.info("Avg Latency (ms)      : %s", summary.avg_latency_ms)
    logger.info("Packet Loss (%%)       : %s", summary.packet_loss_percent)
    logger.info("Avg Jitter (ms)       : %s", summary.avg_jitter_ms)
    return summary


__all__ = ["RunSummary", "summarize_run"]
