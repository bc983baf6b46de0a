import logging

from cellsim.logging_config import SimulatedTimeFilter, configure_logging


def _record():
    return logging.LogRecord("cellsim.test", logging.INFO, __file__, 1, "msg", None, None)


def test_filter_stamps_simulated_time():
    record = _record()
    assert SimulatedTimeFilter(lambda: 2.5).filter(record) is True
    assert record.sim_time == "2.500"


def test_filter_without_clock_uses_placeholder():
    record = _record()
    SimulatedTimeFilter().filter(record)
    assert record.sim_time == "-"


def test_configure_logging_leaves_existing_handlers_alone(monkeypatch):
    root = logging.getLogger()
    sentinel = logging.NullHandler()
    monkeypatch.setattr(root, "handlers", [sentinel])
    level = root.level

    configure_logging(level="DEBUG")

    assert root.handlers == [sentinel]
    assert root.level == level


def test_configure_logging_installs_filtered_handler(monkeypatch, tmp_path):
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    previous_level = root.level
    log_file = tmp_path / "cellsim.log"

    try:
        configure_logging(level="WARNING", log_file=str(log_file))
        assert root.level == logging.WARNING
        assert len(root.handlers) == 2
        assert all(
            any(isinstance(f, SimulatedTimeFilter) for f in h.filters) for h in root.handlers
        )
    finally:
        for handler in root.handlers:
            handler.close()
        root.setLevel(previous_level)
