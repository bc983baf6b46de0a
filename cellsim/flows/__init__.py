"""Flow value types, attribution and delta computation."""

from .attribution import (
    AddressTableAttributor,
    ChainAttributor,
    ExplicitTupleAttributor,
    FlowAttributionCache,
    PortRangeAttributor,
)
from .delta import DeltaEngine
from .types import FlowCounters, FlowRecord, FlowTuple

__all__ = [
    "AddressTableAttributor",
    "ChainAttributor",
    "ExplicitTupleAttributor",
    "FlowAttributionCache",
    "PortRangeAttributor",
    "DeltaEngine",
    "FlowCounters",
    "FlowRecord",
    "FlowTuple",
]
