"""Convert cumulative flow counters into per-interval deltas."""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Dict, Optional

from ..monitoring import metrics
from .types import FlowCounters, FlowId

logger = logging.getLogger(__name__)


class DeltaEngine:
    """Own the previous-counters table and compute interval deltas.

    Parameters
    ----------
    baseline_on_first_sight:
        When ``True`` (default) the first observation of a flow only records
        a baseline and yields an all-zero delta. When ``False`` the previous
        counters of an unseen flow are taken as all-zero, so the whole
        cumulative value counts towards the first interval. The latter is
        what happens when flows are registered with zero counters before any
        traffic starts.
    """

    def __init__(self, baseline_on_first_sight: bool = True) -> None:
        self.baseline_on_first_sight = baseline_on_first_sight
        self._previous: Dict[FlowId, FlowCounters] = {}

    def delta(self, flow_id: FlowId, current: FlowCounters) -> FlowCounters:
        previous = self._previous.get(flow_id)
        # The table is updated on every path, including the clamp path below.
        self._previous[flow_id] = current

        if previous is None:
            if self.baseline_on_first_sight:
                return FlowCounters.zero()
            previous = FlowCounters.zero()

        values = {}
        for f in fields(FlowCounters):
            diff = getattr(current, f.name) - getattr(previous, f.name)
            if diff < 0:
                metrics.CLAMPED_DELTAS.labels(field=f.name).inc()
                logger.warning(
                    "Negative %s delta %s for flow %s (counter reset?); clamping to 0",
                    f.name,
                    diff,
                    flow_id,
                )
                diff = 0
            values[f.name] = diff
        return FlowCounters(**values)

    def previous(self, flow_id: FlowId) -> Optional[FlowCounters]:
        return self._previous.get(flow_id)

    def __len__(self) -> int:
        return len(self._previous)


__all__ = ["DeltaEngine"]
