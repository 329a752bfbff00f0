"""
Tests for count comparison and event creation
"""

import unittest

from fixtures import make_result

from occupancy_detection.core import EventDeriver
from occupancy_detection.models import EventType


class TestCompare(unittest.TestCase):
    """Test comparing consecutive results."""

    def test_first_result_with_people(self):
        """Test people in the first result count as entering."""
        comparison = EventDeriver.compare(None, make_result(2))

        self.assertTrue(comparison.has_changed)
        self.assertEqual(comparison.delta, 2)
        self.assertEqual(comparison.event_type, EventType.ENTERED)

    def test_first_result_empty(self):
        comparison = EventDeriver.compare(None, make_result(0))

        self.assertFalse(comparison.has_changed)
        self.assertEqual(comparison.delta, 0)
        self.assertIsNone(comparison.event_type)

    def test_increase(self):
        comparison = EventDeriver.compare(make_result(1), make_result(3))

        self.assertEqual(comparison.delta, 2)
        self.assertEqual(comparison.event_type, EventType.ENTERED)

    def test_decrease(self):
        comparison = EventDeriver.compare(make_result(3), make_result(1))

        self.assertEqual(comparison.delta, -2)
        self.assertEqual(comparison.event_type, EventType.EXITED)

    def test_unchanged(self):
        """Test equal counts are not a change, whoever is in the frame."""
        comparison = EventDeriver.compare(make_result(2), make_result(2))

        self.assertFalse(comparison.has_changed)
        self.assertIsNone(comparison.event_type)


class TestCreateEvent(unittest.TestCase):
    """Test DetectionEvent construction."""

    def test_event_fields(self):
        previous = make_result(1)
        current = make_result(3)

        event = EventDeriver.create_event(previous, current, EventType.ENTERED)

        self.assertTrue(event.id.startswith("evt_cam1_"))
        self.assertEqual(event.camera_id, "cam1")
        self.assertEqual(event.room_id, "room1")
        self.assertEqual(event.previous_count, 1)
        self.assertEqual(event.current_count, 3)
        self.assertIs(event.detection_result, current)

    def test_event_without_previous(self):
        event = EventDeriver.create_event(None, make_result(2), EventType.ENTERED)

        self.assertEqual(event.previous_count, 0)

    def test_event_ids_unique(self):
        current = make_result(1)
        ids = {
            EventDeriver.create_event(None, current, EventType.ENTERED).id
            for _ in range(20)
        }

        self.assertEqual(len(ids), 20)

    def test_to_dict(self):
        event = EventDeriver.create_event(make_result(2), make_result(0), EventType.EXITED)

        data = event.to_dict()

        self.assertEqual(data["event_type"], "exited")
        self.assertEqual(data["detection_result"]["person_count"], 0)


if __name__ == "__main__":
    unittest.main()
