from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Dedicated registry so tests can build several runtimes in one process
# without "Duplicated timeseries" errors from the default registry.
REGISTRY = CollectorRegistry()

# Flows skipped because no attribution strategy matched
ATTRIBUTION_MISSES = Counter(
    'cellsim_attribution_misses_total',
    'Number of flow observations that could not be attributed to an entity',
    registry=REGISTRY,
)

# Counter deltas that went negative and were clamped to zero
CLAMPED_DELTAS = Counter(
    'cellsim_clamped_deltas_total',
    'Number of negative per-interval counter deltas clamped to zero',
    ['field'],
    registry=REGISTRY,
)

# Handover requests issued by the decision engine
HANDOVER_REQUESTS = Counter(
    'cellsim_handover_requests_total',
    'Number of handover requests issued to the network collaborator',
    registry=REGISTRY,
)

# Requests dropped because no outcome arrived in time
HANDOVER_TIMEOUTS = Counter(
    'cellsim_handover_timeouts_total',
    'Number of pending handover requests expired without an outcome',
    registry=REGISTRY,
)

# Handover events reported back by the network collaborator
HANDOVER_EVENTS = Counter(
    'cellsim_handover_events_total',
    'Number of handover events recorded by outcome',
    ['outcome'],
    registry=REGISTRY,
)

# Entities skipped during a handover tick (missing position, ...)
HANDOVER_SKIPS = Counter(
    'cellsim_handover_skips_total',
    'Number of entity evaluations skipped during a handover tick',
    ['reason'],
    registry=REGISTRY,
)

ENTITY_THROUGHPUT = Gauge(
    'cellsim_entity_throughput_kbps',
    'Throughput of the most recent telemetry interval per entity',
    ['entity'],
    registry=REGISTRY,
)

EXPORT_FAILURES = Counter(
    'cellsim_export_failures_total',
    'Number of metrics sink write failures',
    registry=REGISTRY,
)

# Wall-clock cost of a telemetry or handover tick
TICK_DURATION = Histogram(
    'cellsim_tick_duration_seconds',
    'Processing time of a periodic tick in seconds',
    ['tick'],
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
    registry=REGISTRY,
)
