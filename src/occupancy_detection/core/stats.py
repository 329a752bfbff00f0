"""
Rolling statistics over detection history.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta

from ..models import DetectionResult, DetectionStats, HourlyActivity
from ..utils.constants import STATS_WINDOW_HOURS


class StatsAggregator:
    """
    Compute DetectionStats over a time window of results.

    Stateless apart from the window length; every call recomputes from the
    history it is given.
    """

    def __init__(self, window_hours: float = STATS_WINDOW_HOURS):
        self.window_hours = window_hours

    def _in_window(
        self, history: Iterable[DetectionResult], now: datetime | None
    ) -> list[DetectionResult]:
        cutoff = (now or datetime.now()) - timedelta(hours=self.window_hours)
        return [r for r in history if r.timestamp >= cutoff]

    def calculate(
        self, history: Iterable[DetectionResult], now: datetime | None = None
    ) -> DetectionStats:
        """
        Calculate statistics for results inside the window.

        Args:
            history: Detection results, oldest first
            now: Reference time for the window (defaults to now)

        Returns:
            DetectionStats (all zero when nothing falls in the window)
        """
        recent = self._in_window(history, now)
        if not recent:
            return DetectionStats.empty()

        counts = [r.person_count for r in recent]
        confidences = [p.confidence for r in recent for p in r.detected_persons]

        return DetectionStats(
            total_detections=len(recent),
            average_count=sum(counts) / len(counts),
            max_count=max(counts),
            min_count=min(counts),
            last_detection_time=recent[-1].timestamp,
            detection_accuracy=(
                sum(confidences) / len(confidences) if confidences else 0.0
            ),
            busy_hours=self._busy_hours(recent),
        )

    @staticmethod
    def _busy_hours(results: list[DetectionResult]) -> tuple[HourlyActivity, ...]:
        by_hour: dict[int, list[int]] = defaultdict(list)
        for result in results:
            by_hour[result.timestamp.hour].append(result.person_count)

        activity = [
            HourlyActivity(hour=hour, average_count=sum(c) / len(c))
            for hour, c in by_hour.items()
        ]
        # Busiest first; ties broken by hour so output is deterministic
        activity.sort(key=lambda a: (-a.average_count, a.hour))
        return tuple(activity)

    @staticmethod
    def counts_for_time_range(
        history: Iterable[DetectionResult], minutes: float, now: datetime | None = None
    ) -> list[int]:
        """Person counts of results from the last ``minutes`` minutes."""
        cutoff = (now or datetime.now()) - timedelta(minutes=minutes)
        return [r.person_count for r in history if r.timestamp >= cutoff]

    @staticmethod
    def average_count_for_hour(history: Iterable[DetectionResult], hour: int) -> float:
        """Average person count of results recorded during ``hour`` (0-23)."""
        counts = [r.person_count for r in history if r.timestamp.hour == hour]
        if not counts:
            return 0.0
        return sum(counts) / len(counts)
