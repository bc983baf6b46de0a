"""Unit tests for the delta engine.

Covers baseline handling, repeated snapshots and counter resets.
"""
import unittest

from cellsim.flows.delta import DeltaEngine
from cellsim.flows.types import FlowCounters


class TestDeltaEngine(unittest.TestCase):
    def setUp(self):
        self.engine = DeltaEngine()

    def test_first_observation_is_zero_baseline(self):
        d = self.engine.delta(1, FlowCounters(rx_bytes=5000, rx_packets=10, delay_sum=0.2))
        self.assertEqual(d, FlowCounters.zero())
        self.assertEqual(self.engine.previous(1).rx_bytes, 5000)

    def test_second_observation_is_difference(self):
        self.engine.delta(1, FlowCounters(rx_bytes=1000, tx_packets=10, rx_packets=9))
        d = self.engine.delta(
            1, FlowCounters(rx_bytes=3000, tx_packets=25, rx_packets=20, delay_sum=0.5)
        )
        self.assertEqual(d.rx_bytes, 2000)
        self.assertEqual(d.tx_packets, 15)
        self.assertEqual(d.rx_packets, 11)
        self.assertAlmostEqual(d.delay_sum, 0.5)

    def test_identical_snapshots_give_zero_delta(self):
        counters = FlowCounters(rx_bytes=1000, rx_packets=4, jitter_sum=0.01)
        self.engine.delta(1, FlowCounters())
        self.engine.delta(1, counters)
        self.assertEqual(self.engine.delta(1, counters), FlowCounters.zero())

    def test_negative_delta_clamped_and_baseline_updated(self):
        self.engine.delta(1, FlowCounters(rx_bytes=5000, rx_packets=50))
        with self.assertLogs("cellsim.flows.delta", level="WARNING") as logs:
            d = self.engine.delta(1, FlowCounters(rx_bytes=100, rx_packets=60))
        self.assertEqual(d.rx_bytes, 0)
        self.assertEqual(d.rx_packets, 10)
        self.assertIn("rx_bytes", logs.output[0])
        # the reset value is the new baseline
        d = self.engine.delta(1, FlowCounters(rx_bytes=600, rx_packets=60))
        self.assertEqual(d.rx_bytes, 500)

    def test_flows_are_independent(self):
        self.engine.delta(1, FlowCounters(rx_bytes=100))
        self.engine.delta(2, FlowCounters(rx_bytes=900))
        self.assertEqual(self.engine.delta(1, FlowCounters(rx_bytes=150)).rx_bytes, 50)
        self.assertEqual(len(self.engine), 2)

    def test_zero_previous_mode_counts_first_interval(self):
        engine = DeltaEngine(baseline_on_first_sight=False)
        d = engine.delta(1, FlowCounters(rx_bytes=1000, rx_packets=5))
        self.assertEqual(d.rx_bytes, 1000)
        self.assertEqual(d.rx_packets, 5)

    def test_only_consumed_counters_are_tracked(self):
        counters = FlowCounters.from_dict(
            {"rx_bytes": 1200, "rx_packets": 3, "tx_bytes": 1500, "lost_packets": 1}
        )
        self.assertEqual(counters, FlowCounters(rx_bytes=1200, rx_packets=3))
        self.assertNotIn("tx_bytes", FlowCounters.field_names())
        self.assertNotIn("lost_packets", FlowCounters.field_names())


if __name__ == "__main__":
    unittest.main()
