"""Pytest configuration and shared fixtures.

Provides path setup so the tests run from a source checkout, plus small
in-memory stand-ins for the simulator collaborators.
"""
import os
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).parent.absolute()
PROJECT_ROOT = TESTS_DIR.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellsim.core.config import SimulationSettings, get_settings  # noqa: E402
from cellsim.errors import PositionUnavailableError  # noqa: E402
from cellsim.flows.types import FlowCounters, FlowRecord, FlowTuple  # noqa: E402


def udp_tuple(dst_port, src="1.0.0.2", dst="7.0.0.2", src_port=49153, protocol=17):
    return FlowTuple(src, src_port, dst, dst_port, protocol)


class FakeFlowSource:
    """Snapshot source whose counters are set directly by the test."""

    def __init__(self):
        self.flows = {}
        self.calls = 0

    def set_flow(self, flow_id, flow_tuple, **counters):
        self.flows[flow_id] = FlowRecord(FlowCounters(**counters), flow_tuple)

    def snapshot(self):
        self.calls += 1
        return dict(self.flows)


class FakePositions:
    def __init__(self, entities=None, cells=None):
        self.entities = dict(entities or {})
        self.cells = dict(cells or {})

    def position(self, entity_id):
        try:
            return self.entities[entity_id]
        except KeyError:
            raise PositionUnavailableError(f"entity {entity_id}") from None

    def cell_position(self, cell_id):
        try:
            return self.cells[cell_id]
        except KeyError:
            raise PositionUnavailableError(f"cell {cell_id}") from None


class RecordingRequestSink:
    def __init__(self):
        self.requests = []

    def request_handover(self, entity_id, source_cell_id, target_cell_id, delay):
        self.requests.append((entity_id, source_cell_id, target_cell_id, delay))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("CELLSIM_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings(tmp_path, monkeypatch):
    # keep a stray .env in the working directory out of the tests
    monkeypatch.chdir(tmp_path)

    def _make(**overrides):
        return SimulationSettings(**overrides)

    return _make


@pytest.fixture
def flow_source():
    return FakeFlowSource()


@pytest.fixture
def request_sink():
    return RecordingRequestSink()


__all__ = [
    "TESTS_DIR",
    "PROJECT_ROOT",
    "udp_tuple",
    "FakeFlowSource",
    "FakePositions",
    "RecordingRequestSink",
]
