"""Deterministic simulated-time scheduler.

Periodic handlers are registered up front and fired by an explicit loop
instead of rescheduling themselves from inside their own callback. Time only
advances between callbacks; every callback runs to completion before the
next one starts.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# Events due within this margin of the stop time still run
_STOP_EPSILON = 1e-9


@dataclass(order=True)
class _Scheduled:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    name: str = field(compare=False, default="")
    # periodic bookkeeping; period is None for one-shot events
    period: Optional[float] = field(compare=False, default=None)
    start: float = field(compare=False, default=0.0)
    count: int = field(compare=False, default=0)


class SimulationScheduler:
    """Run callbacks at simulated times.

    Events due at the same instant run in the order they were scheduled.
    Periodic due times are computed as ``start + k * period`` so long runs
    do not accumulate floating point drift.
    """

    def __init__(self, start_time: float = 0.0) -> None:
        self._now = float(start_time)
        self._queue: List[_Scheduled] = []
        self._seq = itertools.count()
        self._stopped = False

    def now(self) -> float:
        return self._now

    def schedule_every(
        self,
        period: float,
        callback: Callable[[], None],
        *,
        name: str = "",
        first: Optional[float] = None,
    ) -> None:
        """Fire ``callback`` every ``period`` seconds.

        The first call happens at ``first`` (default: one period from now).
        """
        if period <= 0:
            raise ValueError("period must be positive")
        start = self._now + period if first is None else float(first)
        heapq.heappush(
            self._queue,
            _Scheduled(start, next(self._seq), callback, name, period, start, 0),
        )

    def schedule_at(self, when: float, callback: Callable[[], None], *, name: str = "") -> None:
        if when < self._now:
            raise ValueError(f"cannot schedule in the past ({when} < {self._now})")
        heapq.heappush(self._queue, _Scheduled(float(when), next(self._seq), callback, name))

    def schedule_in(self, delay: float, callback: Callable[[], None], *, name: str = "") -> None:
        self.schedule_at(self._now + max(float(delay), 0.0), callback, name=name)

    def stop(self) -> None:
        """Stop after the callback currently running returns."""
        self._stopped = True

    def run(self, until: float) -> float:
        """Process events due up to and including ``until``; return the final time."""
        self._stopped = False
        while self._queue and not self._stopped:
            if self._queue[0].due > until + _STOP_EPSILON:
                break
            event = heapq.heappop(self._queue)
            self._now = event.due
            event.callback()
            if event.period is not None:
                event.count += 1
                event.due = event.start + event.count * event.period
                event.seq = next(self._seq)
                heapq.heappush(self._queue, event)
        if not self._stopped:
            self._now = max(self._now, until)
        logger.debug("Scheduler stopped at t=%.3fs", self._now)
        return self._now

    def pending(self) -> int:
        return len(self._queue)


__all__ = ["SimulationScheduler"]
