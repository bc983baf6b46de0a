import pytest

from cellsim.simulation.scheduler import SimulationScheduler


def test_periodic_handler_fires_until_stop_time_inclusive():
    sched = SimulationScheduler()
    times = []
    sched.schedule_every(1.0, lambda: times.append(sched.now()))
    end = sched.run(until=5.0)
    assert times == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert end == 5.0


def test_no_drift_over_many_ticks():
    sched = SimulationScheduler()
    times = []
    sched.schedule_every(0.1, lambda: times.append(sched.now()))
    sched.run(until=100.0)
    assert len(times) == 1000
    assert times[-1] == pytest.approx(100.0)


def test_handlers_due_together_run_in_registration_order():
    sched = SimulationScheduler()
    order = []
    sched.schedule_every(1.0, lambda: order.append(("telemetry", sched.now())))
    sched.schedule_every(0.5, lambda: order.append(("handover", sched.now())))
    sched.run(until=1.0)
    assert order == [("handover", 0.5), ("telemetry", 1.0), ("handover", 1.0)]


def test_one_shot_events_and_delays():
    sched = SimulationScheduler()
    fired = []

    def tick():
        sched.schedule_in(0.25, lambda: fired.append(sched.now()))

    sched.schedule_every(1.0, tick)
    sched.run(until=2.0)
    assert fired == [1.25]
    # the follow-up of the tick at t=2 is still queued
    assert sched.pending() == 2


def test_scheduling_in_the_past_is_rejected():
    sched = SimulationScheduler(start_time=5.0)
    with pytest.raises(ValueError):
        sched.schedule_at(1.0, lambda: None)
    with pytest.raises(ValueError):
        sched.schedule_every(0.0, lambda: None)


def test_stop_from_callback():
    sched = SimulationScheduler()
    calls = []

    def cb():
        calls.append(sched.now())
        if len(calls) == 2:
            sched.stop()

    sched.schedule_every(1.0, cb)
    assert sched.run(until=10.0) == 2.0
    assert calls == [1.0, 2.0]
