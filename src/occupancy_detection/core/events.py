"""
Event derivation - compares consecutive detection results and turns count
changes into DetectionEvents.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

from ..models import DetectionEvent, DetectionResult, EventType


@dataclass(frozen=True)
class CountComparison:
    """Outcome of comparing two consecutive results."""

    has_changed: bool
    delta: int
    event_type: EventType | None


class EventDeriver:
    """Derive entered/exited events from consecutive results."""

    @staticmethod
    def compare(
        previous: DetectionResult | None, current: DetectionResult
    ) -> CountComparison:
        """
        Compare two consecutive results.

        With no previous result, any occupancy counts as people entering.
        COUNT_CHANGED is never produced here: equal counts mean no change
        as far as counts can tell.

        Args:
            previous: Prior result, or None for the first cycle
            current: Newest result

        Returns:
            CountComparison
        """
        if previous is None:
            count = current.person_count
            return CountComparison(
                has_changed=count > 0,
                delta=count,
                event_type=EventType.ENTERED if count > 0 else None,
            )

        delta = current.person_count - previous.person_count
        if delta > 0:
            event_type = EventType.ENTERED
        elif delta < 0:
            event_type = EventType.EXITED
        else:
            event_type = None

        return CountComparison(has_changed=delta != 0, delta=delta, event_type=event_type)

    @staticmethod
    def create_event(
        previous: DetectionResult | None,
        current: DetectionResult,
        event_type: EventType,
    ) -> DetectionEvent:
        """Build the DetectionEvent record for a detected change."""
        return DetectionEvent(
            id=f"evt_{current.camera_id}_{uuid.uuid4().hex[:12]}",
            camera_id=current.camera_id,
            room_id=current.room_id,
            event_type=event_type,
            previous_count=previous.person_count if previous else 0,
            current_count=current.person_count,
            timestamp=datetime.now(),
            detection_result=current,
        )
