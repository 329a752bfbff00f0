"""
Occupancy alert evaluation.

Turns a count change into threshold alerts for downstream notifiers.
Thresholds fire on crossing, not on every cycle spent beyond them, so a
crowded room produces one alert instead of one per tick.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..config.schemas import DetectionConfig
from ..models import DetectionResult
from .events import CountComparison


class AlertType(str, Enum):
    MAX_EXCEEDED = "max_exceeded"
    BELOW_MIN = "below_min"
    COUNT_CHANGED = "count_changed"


@dataclass(frozen=True)
class OccupancyAlert:
    """An alert raised for a room/camera."""

    id: str
    alert_type: AlertType
    camera_id: str
    room_id: str
    previous_count: int
    current_count: int
    threshold: int | None
    timestamp: datetime
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "alert_type": self.alert_type.value,
            "camera_id": self.camera_id,
            "room_id": self.room_id,
            "previous_count": self.previous_count,
            "current_count": self.current_count,
            "threshold": self.threshold,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
        }


def evaluate_alerts(
    comparison: CountComparison,
    previous: DetectionResult | None,
    current: DetectionResult,
    config: DetectionConfig,
) -> list[OccupancyAlert]:
    """
    Evaluate alert thresholds for one result.

    Args:
        comparison: Comparison of previous and current results
        previous: Prior result (None on first cycle)
        current: Newest result
        config: Detection config snapshot holding thresholds

    Returns:
        Alerts to publish (possibly empty)
    """
    prev_count = previous.person_count if previous else 0
    count = current.person_count
    alerts = []

    def make(alert_type: AlertType, threshold: int | None, message: str) -> OccupancyAlert:
        return OccupancyAlert(
            id=f"alert_{current.camera_id}_{uuid.uuid4().hex[:12]}",
            alert_type=alert_type,
            camera_id=current.camera_id,
            room_id=current.room_id,
            previous_count=prev_count,
            current_count=count,
            threshold=threshold,
            timestamp=current.timestamp,
            message=message,
        )

    limit = config.max_people_alert
    if limit is not None and count > limit and (previous is None or prev_count <= limit):
        alerts.append(
            make(
                AlertType.MAX_EXCEEDED,
                limit,
                f"Occupancy {count} exceeds maximum of {limit} in room {current.room_id}",
            )
        )

    floor = config.min_people_alert
    if floor is not None and count < floor and (previous is None or prev_count >= floor):
        alerts.append(
            make(
                AlertType.BELOW_MIN,
                floor,
                f"Occupancy {count} below minimum of {floor} in room {current.room_id}",
            )
        )

    if config.alert_on_count_change and comparison.has_changed:
        alerts.append(
            make(
                AlertType.COUNT_CHANGED,
                None,
                f"Occupancy changed {prev_count} -> {count} in room {current.room_id}",
            )
        )

    return alerts
