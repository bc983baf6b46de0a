"""Interfaces of the collaborators the core talks to.

The simulator, the mobility models and the export layer live outside this
package. Anything that provides these methods can be plugged into
:class:`~cellsim.simulation.runtime.TelemetryHandoverRuntime`.
"""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence, Tuple

from .flows.types import CellId, EntityId, FlowId, FlowRecord

Vector = Tuple[float, float, float]


class FlowSnapshotSource(Protocol):
    def snapshot(self) -> Mapping[FlowId, FlowRecord]:
        """Cumulative counters and tuple for every known flow.

        Called once per telemetry tick; must not have side effects that
        change the next snapshot.
        """
        ...


class PositionSource(Protocol):
    def position(self, entity_id: EntityId) -> Vector:
        ...

    def cell_position(self, cell_id: CellId) -> Vector:
        ...


class HandoverRequestSink(Protocol):
    def request_handover(
        self,
        entity_id: EntityId,
        source_cell_id: Optional[CellId],
        target_cell_id: CellId,
        delay: float,
    ) -> None:
        ...


class MetricsSink(Protocol):
    def write(self, rows: Sequence) -> None:
        """Persist finalized time series rows in tick order."""
        ...


__all__ = [
    "Vector",
    "FlowSnapshotSource",
    "PositionSource",
    "HandoverRequestSink",
    "MetricsSink",
]
