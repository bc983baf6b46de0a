"""Map flows to the logical mobile endpoints that own them.

Attribution is pluggable. Every strategy answers the same question, "which
entity does this five-tuple belong to?", and returns ``(entity_id, ok)``:

``PortRangeAttributor``
    Destination port in ``[base_port, base_port + entity_count)`` maps to
    ``port - base_port``. This is the rule used by the VoIP/UDP scenarios,
    where application ``i`` listens on ``base_port + i``.
``AddressTableAttributor``
    Either endpoint address matches an address registered for an entity.
``ExplicitTupleAttributor``
    Exact five-tuple lookup, for scenarios that mix protocols inside the
    same port range.
``ChainAttributor``
    Tries strategies in order; the first match wins.

:class:`FlowAttributionCache` memoizes successful answers per flow id so the
mapping of a flow never changes during a run.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from ..errors import AttributionError
from ..monitoring import metrics
from .types import EntityId, FlowId, FlowTuple

logger = logging.getLogger(__name__)

Attribution = Tuple[EntityId, bool]
MISS: Attribution = (0, False)


class FlowAttributor(Protocol):
    def attribute(self, flow_tuple: FlowTuple) -> Attribution:
        ...


class PortRangeAttributor:
    """Attribute flows by destination port offset from ``base_port``."""

    def __init__(self, entity_count: int, base_port: int) -> None:
        if entity_count < 0:
            raise AttributionError("entity_count must not be negative")
        self.entity_count = int(entity_count)
        self.base_port = int(base_port)

    def attribute(self, flow_tuple: FlowTuple) -> Attribution:
        candidate = flow_tuple.destination_port - self.base_port
        if 0 <= candidate < self.entity_count:
            return candidate, True
        return MISS


class AddressTableAttributor:
    """Attribute flows whose source or destination address belongs to an entity.

    The source address is checked first, so uplink flows resolve to their
    sender even when the remote host happens to be registered too.
    """

    def __init__(self, entity_addresses: Mapping[EntityId, Iterable[str]]) -> None:
        self._owner: Dict[str, EntityId] = {}
        for entity_id, addresses in entity_addresses.items():
            if isinstance(addresses, str):
                addresses = [addresses]
            for address in addresses:
                previous = self._owner.get(address)
                if previous is not None and previous != entity_id:
                    raise AttributionError(
                        f"address {address} registered for entities "
                        f"{previous} and {entity_id}"
                    )
                self._owner[address] = int(entity_id)

    def attribute(self, flow_tuple: FlowTuple) -> Attribution:
        for address in (flow_tuple.source_address, flow_tuple.destination_address):
            entity_id = self._owner.get(address)
            if entity_id is not None:
                return entity_id, True
        return MISS


class ExplicitTupleAttributor:
    def __init__(self, mapping: Mapping[FlowTuple, EntityId]) -> None:
        self._mapping = dict(mapping)

    def attribute(self, flow_tuple: FlowTuple) -> Attribution:
        entity_id = self._mapping.get(flow_tuple)
        if entity_id is None:
            return MISS
        return entity_id, True


class ChainAttributor:
    def __init__(self, strategies: Sequence[FlowAttributor]) -> None:
        if not strategies:
            raise AttributionError("ChainAttributor needs at least one strategy")
        self.strategies = list(strategies)

    def attribute(self, flow_tuple: FlowTuple) -> Attribution:
        for strategy in self.strategies:
            entity_id, ok = strategy.attribute(flow_tuple)
            if ok:
                return entity_id, True
        return MISS


def attribute(
    flow_tuple: FlowTuple,
    known_entity_count: int,
    base_port: int,
    entity_addresses: Optional[Mapping[EntityId, Iterable[str]]] = None,
) -> Attribution:
    """Port-range attribution with address-table fallback."""
    return default_attributor(known_entity_count, base_port, entity_addresses).attribute(
        flow_tuple
    )


def default_attributor(
    entity_count: int,
    base_port: int,
    entity_addresses: Optional[Mapping[EntityId, Iterable[str]]] = None,
) -> FlowAttributor:
    strategies: list = [PortRangeAttributor(entity_count, base_port)]
    if entity_addresses:
        strategies.append(AddressTableAttributor(entity_addresses))
    return ChainAttributor(strategies)


class FlowAttributionCache:
    """Flow id to entity table, filled lazily on first successful attribution.

    Misses are not cached: a flow whose tuple cannot be attributed is logged
    and retried on the next tick.
    """

    def __init__(self, attributor: FlowAttributor) -> None:
        self.attributor = attributor
        self._table: Dict[FlowId, EntityId] = {}

    def lookup(self, flow_id: FlowId, flow_tuple: FlowTuple) -> Attribution:
        entity_id = self._table.get(flow_id)
        if entity_id is not None:
            return entity_id, True

        entity_id, ok = self.attributor.attribute(flow_tuple)
        if not ok:
            metrics.ATTRIBUTION_MISSES.inc()
            logger.warning(
                "Flow %s could not be attributed to an entity: %s",
                flow_id,
                flow_tuple.describe(),
            )
            return MISS

        self._table[flow_id] = entity_id
        logger.info(
            "Flow %s mapped to entity %s (%s)", flow_id, entity_id, flow_tuple.describe()
        )
        return entity_id, True

    def entity_for(self, flow_id: FlowId) -> Optional[EntityId]:
        return self._table.get(flow_id)

    def flows_for(self, entity_id: EntityId) -> list[FlowId]:
        return [fid for fid, eid in self._table.items() if eid == entity_id]

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, flow_id: object) -> bool:
        return flow_id in self._table


__all__ = [
    "FlowAttributor",
    "PortRangeAttributor",
    "AddressTableAttributor",
    "ExplicitTupleAttributor",
    "ChainAttributor",
    "FlowAttributionCache",
    "attribute",
    "default_attributor",
]
