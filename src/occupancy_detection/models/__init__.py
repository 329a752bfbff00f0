"""
Consolidated data models for occupancy detection.
"""

from .detector import Detector, ModelInfo, Prediction
from .results import (
    DetectedPerson,
    DetectionEvent,
    DetectionResult,
    DetectionStats,
    EventType,
    HourlyActivity,
)

__all__ = [
    # Protocols
    "Detector",
    "ModelInfo",
    "Prediction",
    # Results
    "DetectedPerson",
    "DetectionEvent",
    "DetectionResult",
    "DetectionStats",
    "EventType",
    "HourlyActivity",
]
