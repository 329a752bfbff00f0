"""
Core detection pipeline.

camera -> preprocess -> detector -> tracker (smoothing, events, stats, alerts).
The tracker owns the per-camera state machine and the detection schedule.
"""

from .alerts import AlertType, OccupancyAlert, evaluate_alerts
from .camera import (
    CameraEndpoint,
    FrameSource,
    HttpSnapshotSource,
    RtspFrameSource,
    build_frame_source,
)
from .events import CountComparison, EventDeriver
from .preprocess import DecodedFrame, FramePreprocessor
from .scheduler import IntervalTimer
from .smoothing import OccupancySmoother
from .stats import StatsAggregator
from .tracker import (
    AppState,
    CycleDiagnostics,
    OccupancyTracker,
    TrackerNotification,
    TrackerState,
)
from .tracking import ProximityTracker, TrackIdAssigner

__all__ = [
    "AlertType",
    "AppState",
    "CameraEndpoint",
    "CountComparison",
    "CycleDiagnostics",
    "DecodedFrame",
    "EventDeriver",
    "FramePreprocessor",
    "FrameSource",
    "HttpSnapshotSource",
    "IntervalTimer",
    "OccupancyAlert",
    "OccupancySmoother",
    "OccupancyTracker",
    "ProximityTracker",
    "RtspFrameSource",
    "StatsAggregator",
    "TrackIdAssigner",
    "TrackerNotification",
    "TrackerState",
    "build_frame_source",
    "evaluate_alerts",
]
