"""Passive recorder for handover events reported by the network collaborator.

The simulated network runs its own handover protocol and reports progress
through three callbacks. The log keeps every event, maintains per-interval
counters that the telemetry tick drains into the time series, and, on
success, updates the authoritative attachment table.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..flows.types import CellId, EntityId
from ..monitoring import metrics
from ..network.state_manager import NetworkStateManager

logger = logging.getLogger(__name__)

# Reason code of a reported success whose target cell is not registered
REASON_UNKNOWN_TARGET_CELL = -1


class HandoverOutcome(str, Enum):
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class HandoverEvent:
    timestamp: float
    entity_id: EntityId
    source_cell_id: CellId
    target_cell_id: CellId
    outcome: HandoverOutcome
    reason_code: int = 0

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "ue_id": self.entity_id,
            "from": self.source_cell_id,
            "to": self.target_cell_id,
            "outcome": self.outcome.value,
            "reason_code": self.reason_code,
        }


@dataclass(frozen=True)
class IntervalCounts:
    """Handover events observed during one telemetry interval."""

    started: int = 0
    succeeded: int = 0
    failed: int = 0


class HandoverEventLog:
    """Record start/success/failure callbacks and bucket them per interval."""

    def __init__(
        self,
        state_mgr: NetworkStateManager,
        clock: Callable[[], float],
    ) -> None:
        self.state_mgr = state_mgr
        self.clock = clock
        self._events: List[HandoverEvent] = []
        self._interval: Counter = Counter()
        self._totals: Counter = Counter()
        self._listeners: List[Callable[[HandoverEvent], None]] = []

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def on_start(self, entity_id, source_cell_id, target_cell_id, reason_code=0):
        return self._record(
            HandoverOutcome.STARTED, entity_id, source_cell_id, target_cell_id, reason_code
        )

    def on_success(self, entity_id, source_cell_id, target_cell_id, reason_code=0):
        """Record a completed handover and move the entity to ``target_cell_id``.

        A success naming a cell without a registered position cannot be
        applied; it is recorded as a failure with reason
        :data:`REASON_UNKNOWN_TARGET_CELL` and the attachment stays unchanged.
        """
        if target_cell_id not in self.state_mgr.cells:
            logger.error(
                "Handover success for entity %s names unknown cell %s; attachment kept at %s",
                entity_id,
                target_cell_id,
                self.state_mgr.serving_cell(entity_id),
            )
            return self._record(
                HandoverOutcome.FAILED,
                entity_id,
                source_cell_id,
                target_cell_id,
                REASON_UNKNOWN_TARGET_CELL,
            )
        event = self._record(
            HandoverOutcome.SUCCEEDED, entity_id, source_cell_id, target_cell_id, reason_code
        )
        self.state_mgr.apply_handover(
            entity_id, target_cell_id, timestamp=event.timestamp
        )
        return event

    def on_failure(self, entity_id, source_cell_id, target_cell_id, reason_code=0):
        return self._record(
            HandoverOutcome.FAILED, entity_id, source_cell_id, target_cell_id, reason_code
        )

    def subscribe(self, listener: Callable[[HandoverEvent], None]) -> None:
        """Call ``listener`` for every recorded event."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Interval bucketing
    # ------------------------------------------------------------------
    def drain_interval(self) -> IntervalCounts:
        """Return the counts since the previous drain and reset them to zero."""
        counts = IntervalCounts(
            started=self._interval[HandoverOutcome.STARTED],
            succeeded=self._interval[HandoverOutcome.SUCCEEDED],
            failed=self._interval[HandoverOutcome.FAILED],
        )
        self._interval.clear()
        return counts

    def totals(self) -> IntervalCounts:
        return IntervalCounts(
            started=self._totals[HandoverOutcome.STARTED],
            succeeded=self._totals[HandoverOutcome.SUCCEEDED],
            failed=self._totals[HandoverOutcome.FAILED],
        )

    # ------------------------------------------------------------------
    # History analytics
    # ------------------------------------------------------------------
    @property
    def events(self) -> List[HandoverEvent]:
        return list(self._events)

    def events_for(
        self, entity_id: EntityId, outcome: Optional[HandoverOutcome] = None
    ) -> List[HandoverEvent]:
        return [
            ev
            for ev in self._events
            if ev.entity_id == entity_id and (outcome is None or ev.outcome == outcome)
        ]

    def successes_per_entity(self) -> Dict[EntityId, int]:
        counts: Dict[EntityId, int] = defaultdict(int)
        for ev in self._events:
            if ev.outcome == HandoverOutcome.SUCCEEDED:
                counts[ev.entity_id] += 1
        return dict(counts)

    def pingpong_count(self, window_seconds: float = 10.0) -> int:
        """Count A -> B -> A returns completed within ``window_seconds``."""
        pingpongs = 0
        by_entity: Dict[EntityId, List[HandoverEvent]] = defaultdict(list)
        for ev in self._events:
            if ev.outcome == HandoverOutcome.SUCCEEDED:
                by_entity[ev.entity_id].append(ev)
        for history in by_entity.values():
            for i in range(1, len(history)):
                prev, cur = history[i - 1], history[i]
                if (
                    cur.target_cell_id == prev.source_cell_id
                    and cur.timestamp - prev.timestamp <= window_seconds
                ):
                    pingpongs += 1
        return pingpongs

    def __len__(self) -> int:
        return len(self._events)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _record(self, outcome, entity_id, source_cell_id, target_cell_id, reason_code):
        event = HandoverEvent(
            timestamp=self.clock(),
            entity_id=int(entity_id),
            source_cell_id=source_cell_id,
            target_cell_id=target_cell_id,
            outcome=outcome,
            reason_code=int(reason_code),
        )
        self._events.append(event)
        self._interval[outcome] += 1
        self._totals[outcome] += 1
        metrics.HANDOVER_EVENTS.labels(outcome=outcome.value).inc()
        log = logger.warning if outcome == HandoverOutcome.FAILED else logger.info
        log(
            "Handover %s for entity %s: cell %s -> %s (reason=%s)",
            outcome.value,
            event.entity_id,
            source_cell_id,
            target_cell_id,
            event.reason_code,
        )
        for listener in self._listeners:
            listener(event)
        return event


__all__ = [
    "HandoverOutcome",
    "HandoverEvent",
    "IntervalCounts",
    "HandoverEventLog",
    "REASON_UNKNOWN_TARGET_CELL",
]
