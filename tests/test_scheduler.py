"""
Tests for the interval timer
"""

import threading
import unittest

from fixtures import wait_for

from occupancy_detection.core import IntervalTimer


class TestIntervalTimer(unittest.TestCase):

    def test_ticks_until_cancelled(self):
        ticks = []
        timer = IntervalTimer(0.01, lambda: ticks.append(1))
        timer.start()

        self.assertTrue(wait_for(lambda: len(ticks) >= 3))
        timer.cancel(join_timeout=1.0)
        count = len(ticks)

        self.assertFalse(timer.is_running)
        threading.Event().wait(0.05)
        self.assertEqual(len(ticks), count)

    def test_cancel_wakes_immediately(self):
        """Test a long interval does not delay cancel."""
        timer = IntervalTimer(60.0, lambda: None)
        timer.start()

        timer.cancel(join_timeout=1.0)

        self.assertFalse(timer._thread.is_alive())
        self.assertEqual(timer.tick_count, 0)

    def test_failing_callback_keeps_timer_alive(self):
        calls = []

        def callback():
            calls.append(1)
            raise RuntimeError("tick failed")

        timer = IntervalTimer(0.01, callback)
        timer.start()
        self.addCleanup(timer.cancel, 1.0)

        self.assertTrue(wait_for(lambda: len(calls) >= 3))
        self.assertTrue(timer.is_running)

    def test_start_only_once(self):
        timer = IntervalTimer(1.0, lambda: None)
        timer.start()
        self.addCleanup(timer.cancel, 1.0)

        with self.assertRaises(RuntimeError):
            timer.start()

    def test_invalid_interval(self):
        with self.assertRaises(ValueError):
            IntervalTimer(0, lambda: None)


if __name__ == "__main__":
    unittest.main()
