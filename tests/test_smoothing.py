"""
Tests for occupancy count smoothing
"""

import unittest

from occupancy_detection.core import OccupancySmoother


def feed(smoother, readings):
    """Feed (count, time_ms) pairs and collect the published counts."""
    return [smoother.update(count, now_ms=t) for count, t in readings]


class TestOccupancySmoother(unittest.TestCase):
    """Test debouncing of raw person counts."""

    def test_short_misses_are_held(self):
        """Test two missed frames between detections keep the count."""
        smoother = OccupancySmoother()

        published = feed(smoother, [(3, 0), (0, 600), (0, 1200), (5, 1800)])

        self.assertEqual(published, [3, 3, 3, 5])

    def test_zero_after_hold_window_and_empty_buffer(self):
        """Test zero is published once the buffer holds only zeros."""
        smoother = OccupancySmoother()

        published = feed(smoother, [(3, 0), (0, 600), (0, 1200), (0, 1800)])

        self.assertEqual(published, [3, 3, 3, 0])

    def test_zero_inside_hold_window(self):
        """Test a zero shortly after a detection is held."""
        smoother = OccupancySmoother(buffer_size=1, hold_window_ms=1000)

        self.assertEqual(feed(smoother, [(2, 0), (0, 500)]), [2, 2])
        self.assertEqual(smoother.update(0, now_ms=1500), 0)

    def test_starts_at_zero(self):
        """Test zeros before any detection publish zero."""
        smoother = OccupancySmoother()

        self.assertEqual(feed(smoother, [(0, 0), (0, 600)]), [0, 0])
        self.assertIsNone(smoother.last_stable_timestamp)

    def test_positive_reading_published_immediately(self):
        """Test a new positive count replaces the held one at once."""
        smoother = OccupancySmoother()

        self.assertEqual(feed(smoother, [(4, 0), (0, 100), (1, 200)]), [4, 4, 1])
        self.assertEqual(smoother.last_stable_count, 1)

    def test_buffer_is_bounded(self):
        smoother = OccupancySmoother(buffer_size=3)

        feed(smoother, [(1, 0), (2, 1), (3, 2), (4, 3)])

        self.assertEqual(smoother.buffer, (2, 3, 4))

    def test_reset(self):
        """Test reset forgets readings and stable count."""
        smoother = OccupancySmoother()
        feed(smoother, [(3, 0)])

        smoother.reset()

        self.assertEqual(smoother.value, 0)
        self.assertEqual(smoother.buffer, ())
        self.assertEqual(smoother.update(0, now_ms=100), 0)

    def test_uses_injected_clock(self):
        now = [0.0]
        smoother = OccupancySmoother(buffer_size=1, clock=lambda: now[0])

        smoother.update(2)
        now[0] = 5000.0

        self.assertEqual(smoother.update(0), 0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            OccupancySmoother(buffer_size=0)
        with self.assertRaises(ValueError):
            OccupancySmoother().update(-1)


if __name__ == "__main__":
    unittest.main()
