"""
Detection data models - persons, per-cycle results, count-change events and
rolling statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Kind of occupancy change between two consecutive results."""

    ENTERED = "entered"
    EXITED = "exited"
    COUNT_CHANGED = "count_changed"  # Reserved; unreachable from count-only comparison


@dataclass(frozen=True)
class DetectedPerson:
    """
    A person detected in one frame.

    Attributes:
        id: Unique identifier for this detection
        bbox: (x, y, width, height) in source-frame pixels
        confidence: Detection score, at or above the configured threshold
        timestamp: When the detection was made
        tracking_id: Best-effort proximity identifier (not a durable identity)
    """

    id: str
    bbox: tuple[float, float, float, float]
    confidence: float
    timestamp: datetime
    tracking_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bbox": [round(v, 1) for v in self.bbox],
            "confidence": round(self.confidence, 4),
            "timestamp": self.timestamp.isoformat(),
            "tracking_id": self.tracking_id,
        }


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of one completed detection cycle.

    person_count is derived from detected_persons so the two can never
    disagree.
    """

    detected_persons: tuple[DetectedPerson, ...]
    timestamp: datetime
    camera_id: str
    room_id: str
    frame_width: int
    frame_height: int
    processing_time_ms: float
    frame_id: str | None = None

    @property
    def person_count(self) -> int:
        return len(self.detected_persons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "person_count": self.person_count,
            "detected_persons": [p.to_dict() for p in self.detected_persons],
            "timestamp": self.timestamp.isoformat(),
            "camera_id": self.camera_id,
            "room_id": self.room_id,
            "frame_width": self.frame_width,
            "frame_height": self.frame_height,
            "processing_time_ms": round(self.processing_time_ms, 1),
            "frame_id": self.frame_id,
        }


@dataclass(frozen=True)
class DetectionEvent:
    """A derived occupancy change, suitable for durable storage."""

    id: str
    camera_id: str
    room_id: str
    event_type: EventType
    previous_count: int
    current_count: int
    timestamp: datetime
    detection_result: DetectionResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "camera_id": self.camera_id,
            "room_id": self.room_id,
            "event_type": self.event_type.value,
            "previous_count": self.previous_count,
            "current_count": self.current_count,
            "timestamp": self.timestamp.isoformat(),
            "detection_result": self.detection_result.to_dict(),
        }


@dataclass(frozen=True)
class HourlyActivity:
    """Average occupancy for one hour of the day."""

    hour: int
    average_count: float


@dataclass(frozen=True)
class DetectionStats:
    """Rolling statistics over a window of detection history."""

    total_detections: int = 0
    average_count: float = 0.0
    max_count: int = 0
    min_count: int = 0
    last_detection_time: datetime | None = None
    detection_accuracy: float = 0.0
    busy_hours: tuple[HourlyActivity, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "DetectionStats":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_detections": self.total_detections,
            "average_count": round(self.average_count, 3),
            "max_count": self.max_count,
            "min_count": self.min_count,
            "last_detection_time": (
                self.last_detection_time.isoformat()
                if self.last_detection_time
                else None
            ),
            "detection_accuracy": round(self.detection_accuracy, 4),
            "busy_hours": [
                {"hour": h.hour, "average_count": round(h.average_count, 3)}
                for h in self.busy_hours
            ],
        }
