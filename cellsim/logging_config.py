"""Logging helpers shared by the runtime and the command line entry point."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Callable, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - t=%(sim_time)ss - %(name)s - %(levelname)s - %(message)s"


class SimulatedTimeFilter(logging.Filter):
    """Stamp every record with the current simulated time.

    ``clock`` is any zero-argument callable returning seconds, usually
    :meth:`SimulationScheduler.now`. Before a clock is bound records carry
    ``-`` so the format string never fails.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        super().__init__()
        self.clock = clock

    def filter(self, record: logging.LogRecord) -> bool:
        if self.clock is None:
            record.sim_time = "-"
        else:
            record.sim_time = f"{self.clock():.3f}"
        return True


_SIM_TIME_FILTER = SimulatedTimeFilter()


def bind_simulated_clock(clock: Optional[Callable[[], float]]) -> None:
    """Attach ``clock`` to the filter installed by :func:`configure_logging`."""
    _SIM_TIME_FILTER.clock = clock


def configure_logging(
    level: Union[int, str, None] = None,
    fmt: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None,
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Parameters
    ----------
    level:
        Numeric or string log level. When ``None`` the ``CELLSIM_LOG_LEVEL``
        environment variable is consulted and defaults to ``INFO``.
    fmt:
        Format string passed to :class:`~logging.Formatter`. ``%(sim_time)s``
        expands to the simulated time of the running scenario.
    log_file:
        Optional log file path; written through a size-rotated
        :class:`RotatingFileHandler`. If ``None``, ``CELLSIM_LOG_FILE`` is used if set.

    Only the first call touches the root logger. Later calls, and calls made
    while another framework already installed handlers, return immediately.
    """

    if level is None:
        level = os.getenv("CELLSIM_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    log_file = log_file or os.getenv("CELLSIM_LOG_FILE")

    root = logging.getLogger()
    if root.handlers:
        return

    formatter = logging.Formatter(fmt)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3)
        )

    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(_SIM_TIME_FILTER)
        root.addHandler(handler)
