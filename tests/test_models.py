"""
Tests for data models
"""

import unittest
from datetime import datetime

from fixtures import make_result

from occupancy_detection.models import (
    DetectedPerson,
    DetectionStats,
    EventType,
    ModelInfo,
    Prediction,
)


class TestDetectionResult(unittest.TestCase):
    """Test DetectionResult behaviour."""

    def test_person_count_derived(self):
        """Test person_count always matches detected_persons."""
        for count in (0, 1, 4):
            with self.subTest(count=count):
                result = make_result(count)
                self.assertEqual(result.person_count, len(result.detected_persons))
                self.assertEqual(result.person_count, count)

    def test_immutable(self):
        result = make_result(1)

        with self.assertRaises(AttributeError):
            result.camera_id = "other"

    def test_to_dict(self):
        timestamp = datetime(2024, 5, 1, 9, 30)
        result = make_result(2, timestamp)

        data = result.to_dict()

        self.assertEqual(data["person_count"], 2)
        self.assertEqual(len(data["detected_persons"]), 2)
        self.assertEqual(data["timestamp"], "2024-05-01T09:30:00")
        self.assertEqual(data["camera_id"], "cam1")


class TestDetectedPerson(unittest.TestCase):

    def test_to_dict_rounds(self):
        person = DetectedPerson(
            id="p1",
            bbox=(1.234, 5.678, 10.0, 20.0),
            confidence=0.876543,
            timestamp=datetime(2024, 1, 1),
            tracking_id="track_1",
        )

        data = person.to_dict()

        self.assertEqual(data["bbox"], [1.2, 5.7, 10.0, 20.0])
        self.assertEqual(data["confidence"], 0.8765)
        self.assertEqual(data["tracking_id"], "track_1")


class TestMisc(unittest.TestCase):

    def test_event_type_values(self):
        self.assertEqual(EventType.ENTERED.value, "entered")
        self.assertEqual(EventType.EXITED.value, "exited")
        self.assertEqual(EventType.COUNT_CHANGED.value, "count_changed")

    def test_empty_stats(self):
        stats = DetectionStats.empty()

        self.assertEqual(stats.total_detections, 0)
        self.assertEqual(stats.to_dict()["last_detection_time"], None)

    def test_prediction_frozen(self):
        prediction = Prediction("person", 0.9, (0, 0, 1, 1))

        with self.assertRaises(AttributeError):
            prediction.confidence = 0.1

    def test_model_info_to_dict(self):
        info = ModelInfo("yolo", "8.0", True, 12.5, ["person"])

        self.assertEqual(info.to_dict()["supported_classes"], ["person"])


if __name__ == "__main__":
    unittest.main()
