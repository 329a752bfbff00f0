"""
Utility modules for constants.
"""

from .constants import (
    DEFAULT_CAMERA_TIMEOUT_MS,
    DEFAULT_JSON_DIR,
    HISTORY_SIZE,
    PERSON_LABEL,
    RECENT_EVENTS_LIMIT,
    STATS_WINDOW_HOURS,
    STATUS_REPORT_INTERVAL,
)

__all__ = [
    "DEFAULT_CAMERA_TIMEOUT_MS",
    "DEFAULT_JSON_DIR",
    "HISTORY_SIZE",
    "PERSON_LABEL",
    "RECENT_EVENTS_LIMIT",
    "STATS_WINDOW_HOURS",
    "STATUS_REPORT_INTERVAL",
]
