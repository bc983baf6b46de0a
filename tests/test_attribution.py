import pytest

from cellsim.errors import AttributionError
from cellsim.flows.attribution import (
    AddressTableAttributor,
    ChainAttributor,
    ExplicitTupleAttributor,
    FlowAttributionCache,
    PortRangeAttributor,
    attribute,
)
from cellsim.monitoring import metrics

from conftest import udp_tuple


def test_port_in_range_maps_to_offset():
    assert attribute(udp_tuple(5003), known_entity_count=5, base_port=5000) == (3, True)
    assert attribute(udp_tuple(5000), known_entity_count=5, base_port=5000) == (0, True)


@pytest.mark.parametrize("port", [4999, 5005, 80])
def test_port_outside_range_is_a_miss(port):
    assert attribute(udp_tuple(port), known_entity_count=5, base_port=5000) == (0, False)


def test_address_fallback_when_port_misses():
    addresses = {2: ["7.0.0.4"], 4: "7.0.0.6"}
    flow = udp_tuple(9999, src="1.0.0.2", dst="7.0.0.6")
    assert attribute(flow, 5, 5000, addresses) == (4, True)

    uplink = udp_tuple(9999, src="7.0.0.4", dst="1.0.0.2")
    assert attribute(uplink, 5, 5000, addresses) == (2, True)


def test_port_rule_takes_precedence_over_addresses():
    addresses = {4: ["7.0.0.6"]}
    flow = udp_tuple(5001, dst="7.0.0.6")
    assert attribute(flow, 5, 5000, addresses) == (1, True)


def test_address_registered_twice_is_rejected():
    with pytest.raises(AttributionError):
        AddressTableAttributor({0: ["7.0.0.2"], 1: ["7.0.0.2"]})


def test_explicit_tuple_and_chain():
    voice = udp_tuple(5001)
    tcp = udp_tuple(5001, protocol=6)
    chain = ChainAttributor(
        [ExplicitTupleAttributor({tcp: 3}), PortRangeAttributor(entity_count=5, base_port=5000)]
    )
    assert chain.attribute(tcp) == (3, True)
    assert chain.attribute(voice) == (1, True)


def test_empty_chain_rejected():
    with pytest.raises(AttributionError):
        ChainAttributor([])


def test_attribution_is_deterministic():
    strategy = PortRangeAttributor(entity_count=5, base_port=5000)
    flow = udp_tuple(5002)
    assert {strategy.attribute(flow) for _ in range(10)} == {(2, True)}


def test_cache_keeps_first_mapping():
    class Flaky:
        def __init__(self):
            self.calls = 0

        def attribute(self, flow_tuple):
            self.calls += 1
            return self.calls, True

    strategy = Flaky()
    cache = FlowAttributionCache(strategy)
    assert cache.lookup(7, udp_tuple(5000)) == (1, True)
    assert cache.lookup(7, udp_tuple(5000)) == (1, True)
    assert strategy.calls == 1
    assert cache.entity_for(7) == 1
    assert cache.flows_for(1) == [7]
    assert 7 in cache and len(cache) == 1


def test_cache_does_not_store_misses(caplog):
    cache = FlowAttributionCache(PortRangeAttributor(entity_count=2, base_port=5000))
    before = metrics.REGISTRY.get_sample_value("cellsim_attribution_misses_total")

    with caplog.at_level("WARNING"):
        assert cache.lookup(1, udp_tuple(6000)) == (0, False)
    assert "could not be attributed" in caplog.text
    assert "6000" in caplog.text
    assert 1 not in cache
    assert metrics.REGISTRY.get_sample_value("cellsim_attribution_misses_total") == before + 1
