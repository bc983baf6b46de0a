import pytest
from pydantic import ValidationError

from cellsim.core.config import SimulationSettings, get_settings


def test_defaults(make_settings):
    s = make_settings()
    assert s.entity_count == 5
    assert s.base_port == 5000
    assert s.protocols == frozenset({17})
    assert s.tick_interval_seconds == 1.0
    assert s.baseline_on_first_sight is True
    assert s.entity_addresses == {}


def test_dwell_defaults_to_handover_period(make_settings):
    assert make_settings(handover_interval_seconds=2.5).dwell_seconds == 2.5
    assert make_settings(min_dwell_seconds=0.0).dwell_seconds == 0.0


def test_environment_overrides(make_settings, monkeypatch):
    monkeypatch.setenv("CELLSIM_ENTITY_COUNT", "3")
    monkeypatch.setenv("CELLSIM_PROTOCOLS", "6, 17")
    monkeypatch.setenv("CELLSIM_ENTITY_ADDRESSES", '{"1": "7.0.0.3", "2": ["7.0.0.4", "7.0.0.5"]}')
    monkeypatch.setenv("CELLSIM_DISTANCE_THRESHOLD_METERS", "250")

    s = make_settings()
    assert s.entity_count == 3
    assert s.protocols == frozenset({6, 17})
    assert s.entity_addresses == {1: ["7.0.0.3"], 2: ["7.0.0.4", "7.0.0.5"]}
    assert s.distance_threshold_meters == 250.0


def test_protocols_accept_json_list(make_settings):
    assert make_settings(protocols="[6]").protocols == frozenset({6})
    assert make_settings(protocols="").protocols == frozenset()


def test_dotenv_file_is_read(make_settings, tmp_path):
    (tmp_path / ".env").write_text("CELLSIM_BASE_PORT=6000\n")
    assert make_settings().base_port == 6000


@pytest.mark.parametrize(
    "overrides",
    [
        {"entity_count": 0},
        {"tick_interval_seconds": 0},
        {"base_port": 65535, "entity_count": 5},
        {"min_dwell_seconds": -1},
    ],
)
def test_invalid_values_are_rejected(make_settings, overrides):
    with pytest.raises(ValidationError):
        make_settings(**overrides)


def test_get_settings_is_cached(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CELLSIM_ENTITY_COUNT", "2")
    first = get_settings()
    monkeypatch.setenv("CELLSIM_ENTITY_COUNT", "4")
    assert get_settings() is first
    get_settings.cache_clear()
    assert isinstance(get_settings(), SimulationSettings)
    assert get_settings().entity_count == 4


def test_pending_timeout_defaults(make_settings):
    assert make_settings().pending_timeout == 3.0
    assert make_settings(min_dwell_seconds=2.0).pending_timeout == 6.0
    # never shorter than the handover delay plus one handover period
    assert make_settings(handover_delay_seconds=5.0).pending_timeout == 6.0
    assert make_settings(pending_timeout_seconds=1.5).pending_timeout == 1.5
    with pytest.raises(ValidationError):
        make_settings(pending_timeout_seconds=0)
