"""
Occupancy Detection System

Real-time room occupancy from network cameras. Periodically grabs a frame,
counts people with a YOLO detector, smooths the count and derives
entered/exited events, rolling statistics and threshold alerts.

Package structure:
  core/       - Frame acquisition, preprocessing, tracker state machine
  detectors/  - Detector backends (YOLO)
  models/     - Result, event and stats data types
  sinks/      - JSONL, webhook and callback outputs
  config/     - Configuration loading and validation
  utils/      - Constants
"""

__version__ = "1.0.0"

from .config import (
    Config,
    DetectionConfig,
    ValidationResult,
    load_config,
    validate_config_full,
)
from .core import (
    AppState,
    OccupancyTracker,
    TrackerNotification,
    TrackerState,
)
from .errors import (
    AcquisitionError,
    ConfigError,
    InferenceError,
    OccupancyError,
    PreprocessError,
)
from .models import (
    DetectedPerson,
    DetectionEvent,
    DetectionResult,
    DetectionStats,
    EventType,
)

__all__ = [
    "AcquisitionError",
    "AppState",
    "Config",
    "ConfigError",
    "DetectedPerson",
    "DetectionConfig",
    "DetectionEvent",
    "DetectionResult",
    "DetectionStats",
    "EventType",
    "InferenceError",
    "OccupancyError",
    "OccupancyTracker",
    "PreprocessError",
    "TrackerNotification",
    "TrackerState",
    "ValidationResult",
    "load_config",
    "validate_config_full",
]
