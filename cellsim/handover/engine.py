"""Distance-based handover decisions issued to the network collaborator."""

from __future__ import annotations

import json
import logging
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from ..errors import PositionUnavailableError
from ..flows.types import CellId, EntityId
from ..monitoring import metrics
from ..network.state_manager import NetworkStateManager
from ..ports import HandoverRequestSink, PositionSource
from ..tools.distance import Position, nearest_cell
from .events import HandoverEvent, HandoverOutcome

# Slack for float accumulation when comparing simulated times
_TIME_EPSILON = 1e-9


class HandoverDecision(NamedTuple):
    should_handover: bool
    target_cell_id: Optional[CellId]
    min_distance: float = float("inf")


class HandoverRequest(NamedTuple):
    timestamp: float
    entity_id: EntityId
    source_cell_id: Optional[CellId]
    target_cell_id: CellId
    delay: float


def evaluate(
    entity_id: EntityId,
    position: Sequence[float],
    cells: Sequence[Tuple[CellId, Position]],
    attachment: Mapping[EntityId, CellId],
    distance_threshold_meters: float,
) -> HandoverDecision:
    """Decide whether ``entity_id`` should move to its nearest cell.

    A handover is wanted when the nearest cell differs from the serving cell
    and lies strictly closer than ``distance_threshold_meters``. Equidistant
    cells resolve to the one listed first in ``cells``.
    """
    if not cells:
        return HandoverDecision(False, None)
    best_cell, min_distance = nearest_cell(position, cells)
    current = attachment.get(entity_id)
    trigger = best_cell != current and min_distance < distance_threshold_meters
    return HandoverDecision(trigger, best_cell if trigger else None, min_distance)


class HandoverDecisionEngine:
    """Periodically compare every entity's nearest cell with its serving cell.

    The engine never changes attachments itself. It only sends requests to
    the network collaborator; the attachment table follows the collaborator's
    success callback. Two guards limit oscillation: an entity is not
    re-evaluated until ``min_dwell_seconds`` have elapsed since its last
    attachment change or request, and at most one request per entity may be
    outstanding at a time. An outstanding request that gets no outcome within
    ``pending_timeout_seconds`` is dropped and the entity is evaluated again.
    """

    def __init__(
        self,
        state_mgr: NetworkStateManager,
        positions: PositionSource,
        request_sink: HandoverRequestSink,
        clock: Callable[[], float],
        *,
        distance_threshold_meters: float,
        min_dwell_seconds: float = 1.0,
        handover_delay_seconds: float = 0.0,
        pending_timeout_seconds: Optional[float] = None,
    ) -> None:
        self.state_mgr = state_mgr
        self.positions = positions
        self.request_sink = request_sink
        self.clock = clock
        self.distance_threshold_meters = float(distance_threshold_meters)
        self.min_dwell_seconds = float(min_dwell_seconds)
        self.handover_delay_seconds = float(handover_delay_seconds)
        # None keeps a request pending until the collaborator reports back
        self.pending_timeout_seconds = (
            None if pending_timeout_seconds is None else float(pending_timeout_seconds)
        )
        self.logger = getattr(state_mgr, "logger", logging.getLogger("HandoverEngine"))
        self._last_request: Dict[EntityId, float] = {}
        self._pending: Dict[EntityId, CellId] = {}
        self.requests: List[HandoverRequest] = []

    # ------------------------------------------------------------------

    def on_event(self, event: HandoverEvent) -> None:
        """Event log listener releasing the pending request of an entity."""
        if event.outcome in (HandoverOutcome.SUCCEEDED, HandoverOutcome.FAILED):
            self._pending.pop(event.entity_id, None)

    def pending(self, entity_id: EntityId) -> Optional[CellId]:
        return self._pending.get(entity_id)

    def _dwell_elapsed(self, entity_id: EntityId, now: float) -> bool:
        marks = [
            t
            for t in (
                self.state_mgr.last_change.get(entity_id),
                self._last_request.get(entity_id),
            )
            if t is not None
        ]
        if not marks:
            return True
        return now - max(marks) + _TIME_EPSILON >= self.min_dwell_seconds

    def _pending_expired(self, entity_id: EntityId, now: float) -> bool:
        if self.pending_timeout_seconds is None:
            return False
        requested_at = self._last_request.get(entity_id, now)
        return now - requested_at + _TIME_EPSILON >= self.pending_timeout_seconds

    def _read_positions(self, entity_ids: Iterable[EntityId]) -> Dict[EntityId, Position]:
        snapshot: Dict[EntityId, Position] = {}
        for entity_id in entity_ids:
            try:
                snapshot[entity_id] = tuple(self.positions.position(entity_id))
            except (PositionUnavailableError, KeyError) as exc:
                metrics.HANDOVER_SKIPS.labels(reason="missing_position").inc()
                self.logger.warning(
                    "No position for entity %s; skipping handover check (%s)",
                    entity_id,
                    exc,
                )
        return snapshot

    # ------------------------------------------------------------------

    def decide_and_request(self, entity_id: EntityId, position: Sequence[float]):
        """Evaluate one entity and issue a request when the decision fires."""
        now = self.clock()
        decision_log = {
            "timestamp": now,
            "ue_id": entity_id,
            "position": list(position),
            "current_cell": self.state_mgr.serving_cell(entity_id),
        }

        if entity_id in self._pending and self._pending_expired(entity_id, now):
            expired = self._pending.pop(entity_id)
            metrics.HANDOVER_TIMEOUTS.inc()
            self.logger.warning(
                "Handover request for entity %s to cell %s got no outcome within %.3fs; "
                "re-evaluating",
                entity_id,
                expired,
                self.pending_timeout_seconds,
            )

        if entity_id in self._pending:
            decision_log["skipped"] = "request_pending"
            decision_log["pending_target"] = self._pending[entity_id]
            metrics.HANDOVER_SKIPS.labels(reason="pending").inc()
            self.logger.debug(f"HANDOVER_DECISION: {json.dumps(decision_log)}")
            return None
        if not self._dwell_elapsed(entity_id, now):
            decision_log["skipped"] = "dwell_time"
            metrics.HANDOVER_SKIPS.labels(reason="dwell_time").inc()
            self.logger.debug(f"HANDOVER_DECISION: {json.dumps(decision_log)}")
            return None

        decision = evaluate(
            entity_id,
            position,
            self.state_mgr.cell_list(),
            self.state_mgr.attachments,
            self.distance_threshold_meters,
        )
        decision_log["min_distance_m"] = decision.min_distance
        decision_log["threshold_m"] = self.distance_threshold_meters
        decision_log["handover_triggered"] = decision.should_handover
        decision_log["target_cell"] = decision.target_cell_id
        self.logger.debug(f"HANDOVER_DECISION: {json.dumps(decision_log)}")

        if not decision.should_handover:
            return None

        request = HandoverRequest(
            timestamp=now,
            entity_id=entity_id,
            source_cell_id=self.state_mgr.serving_cell(entity_id),
            target_cell_id=decision.target_cell_id,
            delay=self.handover_delay_seconds,
        )
        self._pending[entity_id] = request.target_cell_id
        self._last_request[entity_id] = now
        self.requests.append(request)
        metrics.HANDOVER_REQUESTS.inc()
        self.logger.info(
            f"HANDOVER_REQUESTED: {json.dumps(request._asdict())}"
        )
        self.request_sink.request_handover(
            request.entity_id,
            request.source_cell_id,
            request.target_cell_id,
            request.delay,
        )
        return request

    def run_tick(self, entity_ids: Iterable[EntityId]) -> List[HandoverRequest]:
        """Handover tick: one position snapshot, then every entity in order."""
        snapshot = self._read_positions(list(entity_ids))
        if self.logger.isEnabledFor(logging.DEBUG):
            for entity_id, position in snapshot.items():
                self.logger.debug("Entity %s at %s", entity_id, position)
        issued = []
        for entity_id, position in snapshot.items():
            request = self.decide_and_request(entity_id, position)
            if request is not None:
                issued.append(request)
        return issued


__all__ = ["HandoverDecision", "HandoverRequest", "HandoverDecisionEngine", "evaluate"]
