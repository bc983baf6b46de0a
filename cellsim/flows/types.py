"""Value types describing flows reported by the flow-accounting collaborator."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import NamedTuple

UDP_PROTOCOL = 17
TCP_PROTOCOL = 6

FlowId = int
EntityId = int
CellId = int


@dataclass(frozen=True)
class FlowTuple:
    """Five-tuple identifying a flow."""

    source_address: str
    source_port: int
    destination_address: str
    destination_port: int
    protocol: int = UDP_PROTOCOL

    def describe(self) -> str:
        return (
            f"{self.source_address}:{self.source_port} -> "
            f"{self.destination_address}:{self.destination_port} "
            f"(proto={self.protocol})"
        )


@dataclass(frozen=True)
class FlowCounters:
    """Cumulative counters for a single flow.

    Times are expressed in seconds. ``delay_sum`` and ``jitter_sum`` are the
    sums over all received packets, exactly as the simulator accumulates them.
    """

    rx_bytes: int = 0
    tx_packets: int = 0
    rx_packets: int = 0
    delay_sum: float = 0.0
    jitter_sum: float = 0.0
    first_tx_time: float = 0.0
    last_rx_time: float = 0.0

    @classmethod
    def zero(cls) -> "FlowCounters":
        return cls()

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_dict(cls, data: dict) -> "FlowCounters":
        """Build counters from a mapping, ignoring unknown keys."""
        known = set(cls.field_names())
        return cls(**{k: v for k, v in data.items() if k in known})


class FlowRecord(NamedTuple):
    """Entry of a flow snapshot: cumulative counters plus identifying tuple."""

    counters: FlowCounters
    tuple: FlowTuple


__all__ = [
    "UDP_PROTOCOL",
    "TCP_PROTOCOL",
    "FlowId",
    "EntityId",
    "CellId",
    "FlowTuple",
    "FlowCounters",
    "FlowRecord",
]
