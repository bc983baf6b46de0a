"""Wire the telemetry aggregator and the handover loop onto one scheduler.

``TelemetryHandoverRuntime`` owns every piece of mutable state of a run
(previous counters, flow attribution, attachments, time series, handover
events). Two periodic handlers drive it:

* the telemetry tick reads one flow snapshot, attributes and differences
  every flow, aggregates per entity and appends a time series row together
  with the handover events counted since the previous tick;
* the handover tick reads one position snapshot and lets the decision engine
  request handovers from the network collaborator.

Results are finalized and handed to the metrics sink when the run stops.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..core.config import SimulationSettings
from ..errors import ConfigurationError, PositionUnavailableError
from ..flows.attribution import FlowAttributionCache, FlowAttributor, default_attributor
from ..flows.delta import DeltaEngine
from ..flows.types import CellId, EntityId, FlowCounters, FlowId
from ..handover.engine import HandoverDecisionEngine
from ..handover.events import HandoverEventLog
from ..metrics.aggregator import FlowObservation, PerEntityAggregator
from ..metrics.summary import RunSummary, summarize_run
from ..metrics.timeseries import EntityIntervalMetrics, TimeSeries, TimeSeriesRow
from ..monitoring import metrics
from ..network.state_manager import NetworkStateManager
from ..ports import FlowSnapshotSource, HandoverRequestSink, MetricsSink, PositionSource
from .scheduler import SimulationScheduler

logger = logging.getLogger(__name__)


class TelemetryHandoverRuntime:
    def __init__(
        self,
        settings: SimulationSettings,
        flow_source: FlowSnapshotSource,
        positions: PositionSource,
        request_sink: HandoverRequestSink,
        *,
        scheduler: Optional[SimulationScheduler] = None,
        attributor: Optional[FlowAttributor] = None,
        metrics_sink: Optional[MetricsSink] = None,
    ) -> None:
        self.settings = settings
        self.flow_source = flow_source
        self.positions = positions
        self.metrics_sink = metrics_sink
        self.scheduler = scheduler or SimulationScheduler()

        self.attribution = FlowAttributionCache(
            attributor
            or default_attributor(
                settings.entity_count, settings.base_port, settings.entity_addresses
            )
        )
        self.delta_engine = DeltaEngine(settings.baseline_on_first_sight)
        self.time_series = TimeSeries()
        self.aggregator = PerEntityAggregator(settings.entity_count, self.time_series)

        self.state_manager = NetworkStateManager()
        self.event_log = HandoverEventLog(self.state_manager, clock=self.scheduler.now)
        self.engine = HandoverDecisionEngine(
            self.state_manager,
            positions,
            request_sink,
            clock=self.scheduler.now,
            distance_threshold_meters=settings.distance_threshold_meters,
            min_dwell_seconds=settings.dwell_seconds,
            handover_delay_seconds=settings.handover_delay_seconds,
            pending_timeout_seconds=settings.pending_timeout,
        )
        self.event_log.subscribe(self.engine.on_event)

        self._final_counters: Dict[FlowId, FlowCounters] = {}
        self._started = False
        self.export_errors: List[Exception] = []
        self.summary: Optional[RunSummary] = None

    @property
    def entity_ids(self) -> List[EntityId]:
        return list(range(self.settings.entity_count))

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def register_cells(self, cell_ids: Iterable[CellId]) -> None:
        """Load static cell positions from the position source."""
        for cell_id in cell_ids:
            try:
                self.state_manager.add_cell(cell_id, self.positions.cell_position(cell_id))
            except (PositionUnavailableError, KeyError) as exc:
                logger.error("No position for cell %s; cell ignored (%s)", cell_id, exc)

    def attach_initial(self) -> Dict[EntityId, CellId]:
        """Attach every entity to its nearest cell at the current time."""
        if not self.state_manager.cells:
            raise ConfigurationError("cannot attach entities: no cells registered")
        now = self.scheduler.now()
        for entity_id in self.entity_ids:
            try:
                position = self.positions.position(entity_id)
            except (PositionUnavailableError, KeyError) as exc:
                logger.warning("Entity %s has no position; left unattached (%s)", entity_id, exc)
                continue
            self.state_manager.attach_to_nearest(entity_id, position, timestamp=now)
        return self.state_manager.attachment_snapshot()

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.scheduler.schedule_every(
            self.settings.tick_interval_seconds, self.telemetry_tick, name="telemetry"
        )
        self.scheduler.schedule_every(
            self.settings.handover_interval_seconds, self.handover_tick, name="handover"
        )

    # ------------------------------------------------------------------
    # Periodic handlers
    # ------------------------------------------------------------------
    def telemetry_tick(self) -> Dict[EntityId, EntityIntervalMetrics]:
        with metrics.TICK_DURATION.labels(tick="telemetry").time():
            snapshot = self.flow_source.snapshot()
            protocols = self.settings.protocols
            observations = []
            for flow_id, record in snapshot.items():
                if protocols and record.tuple.protocol not in protocols:
                    continue
                entity_id, ok = self.attribution.lookup(flow_id, record.tuple)
                if not ok:
                    continue
                delta = self.delta_engine.delta(flow_id, record.counters)
                self._final_counters[flow_id] = record.counters
                observations.append(FlowObservation(entity_id, delta, record.counters))

            return self.aggregator.aggregate(
                self.settings.tick_interval_seconds,
                observations,
                timestamp=self.scheduler.now(),
                handovers=self.event_log.drain_interval(),
            )

    def handover_tick(self):
        with metrics.TICK_DURATION.labels(tick="handover").time():
            return self.engine.run_tick(self.entity_ids)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------
    def run(self, cell_ids: Optional[Iterable[CellId]] = None) -> List[TimeSeriesRow]:
        """Set up, run to ``simulation_duration_seconds`` and finalize."""
        if cell_ids is not None:
            self.register_cells(cell_ids)
            self.attach_initial()
        self.start()
        self.scheduler.run(until=self.settings.simulation_duration_seconds)
        return self.finalize()

    def finalize(self) -> List[TimeSeriesRow]:
        rows = self.time_series.finalize()
        self.summary = summarize_run(self._final_counters.values(), self.event_log)
        if self.metrics_sink is not None:
            try:
                self.metrics_sink.write(rows)
            except Exception as exc:  # noqa: BLE001 - export never aborts the run
                metrics.EXPORT_FAILURES.inc()
                self.export_errors.append(exc)
                logger.exception("Metrics sink failed to write %d rows", len(rows))
        return rows


__all__ = ["TelemetryHandoverRuntime"]
