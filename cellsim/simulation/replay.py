"""Collaborators that replay a recorded simulation trace.

A trace is a JSON document::

    {
      "cells": {"0": [0, 0, 25], "1": [500, 0, 25]},
      "steps": [
        {"time": 0.0,
         "positions": {"0": [10, 0, 1.5]},
         "flows": [{"flow_id": 1,
                    "tuple": {"source_address": "1.0.0.2", "source_port": 49153,
                              "destination_address": "7.0.0.2",
                              "destination_port": 5000, "protocol": 17},
                    "counters": {"rx_bytes": 0, "tx_packets": 0, ...}}]},
        ...
      ]
    }

Each step holds the state from its ``time`` until the next step. Positions
missing from a step carry over from earlier steps; flow snapshots replace
the previous snapshot wholesale.
"""

from __future__ import annotations

import bisect
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..errors import PositionUnavailableError
from ..flows.types import CellId, EntityId, FlowCounters, FlowId, FlowRecord, FlowTuple
from ..handover.events import HandoverEventLog
from ..ports import Vector
from .scheduler import SimulationScheduler

logger = logging.getLogger(__name__)


class TraceReplay:
    """Flow snapshot source and position source backed by a recorded trace."""

    def __init__(self, trace: Mapping[str, Any], clock: Callable[[], float]) -> None:
        self.clock = clock
        self.cells: Dict[CellId, Vector] = {
            int(cid): _vector(pos) for cid, pos in trace.get("cells", {}).items()
        }
        steps = sorted(trace.get("steps", []), key=lambda s: float(s.get("time", 0.0)))
        self._times: List[float] = []
        self._snapshots: List[Dict[FlowId, FlowRecord]] = []
        self._positions: List[Dict[EntityId, Vector]] = []

        positions: Dict[EntityId, Vector] = {}
        snapshot: Dict[FlowId, FlowRecord] = {}
        for step in steps:
            for eid, pos in step.get("positions", {}).items():
                positions[int(eid)] = _vector(pos)
            if "flows" in step:
                snapshot = {
                    int(flow["flow_id"]): FlowRecord(
                        FlowCounters.from_dict(flow.get("counters", {})),
                        FlowTuple(**flow["tuple"]),
                    )
                    for flow in step["flows"]
                }
            self._times.append(float(step.get("time", 0.0)))
            self._positions.append(dict(positions))
            self._snapshots.append(snapshot)

    @classmethod
    def from_file(cls, path: Union[str, Path], clock: Callable[[], float]) -> "TraceReplay":
        with open(path) as f:
            return cls(json.load(f), clock)

    def _index(self) -> Optional[int]:
        idx = bisect.bisect_right(self._times, self.clock() + 1e-9) - 1
        return idx if idx >= 0 else None

    def snapshot(self) -> Dict[FlowId, FlowRecord]:
        idx = self._index()
        return {} if idx is None else dict(self._snapshots[idx])

    def position(self, entity_id: EntityId) -> Vector:
        idx = self._index()
        if idx is None or entity_id not in self._positions[idx]:
            raise PositionUnavailableError(f"entity {entity_id} has no position")
        return self._positions[idx][entity_id]

    def cell_position(self, cell_id: CellId) -> Vector:
        try:
            return self.cells[cell_id]
        except KeyError:
            raise PositionUnavailableError(f"cell {cell_id} has no position") from None

    @property
    def entity_ids(self) -> List[EntityId]:
        ids = set()
        for positions in self._positions:
            ids.update(positions)
        return sorted(ids)


class SimulatedHandoverNetwork:
    """Handover collaborator that completes requests after their delay.

    ``on_start`` fires immediately. After ``delay`` simulated seconds the
    handover succeeds, unless the target cell is unknown to ``known_cells``,
    in which case it fails with ``reason_code`` 1.
    """

    UNKNOWN_TARGET = 1

    def __init__(
        self,
        scheduler: SimulationScheduler,
        event_log: Optional[HandoverEventLog] = None,
        known_cells: Optional[Mapping[CellId, Any]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.event_log = event_log
        self.known_cells = known_cells

    def bind(self, event_log: HandoverEventLog) -> None:
        self.event_log = event_log

    def request_handover(self, entity_id, source_cell_id, target_cell_id, delay):
        if self.event_log is None:
            raise RuntimeError("SimulatedHandoverNetwork is not bound to an event log")
        log = self.event_log
        log.on_start(entity_id, source_cell_id, target_cell_id)

        def complete():
            if self.known_cells is not None and target_cell_id not in self.known_cells:
                log.on_failure(entity_id, source_cell_id, target_cell_id, self.UNKNOWN_TARGET)
            else:
                log.on_success(entity_id, source_cell_id, target_cell_id)

        self.scheduler.schedule_in(delay, complete, name=f"handover-{entity_id}")


def _vector(pos) -> Vector:
    coords = [float(c) for c in pos]
    if len(coords) == 2:
        coords.append(0.0)
    return coords[0], coords[1], coords[2]


__all__ = ["TraceReplay", "SimulatedHandoverNetwork"]
