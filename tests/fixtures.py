"""
Shared fakes for tracker and pipeline tests.
"""

import threading
import time
from datetime import datetime

import cv2
import numpy as np

from occupancy_detection.errors import (
    AcquisitionError,
    AcquisitionErrorKind,
    InferenceError,
    InferenceErrorKind,
)
from occupancy_detection.models import (
    DetectedPerson,
    DetectionResult,
    ModelInfo,
    Prediction,
)


def make_jpeg(width: int = 64, height: int = 48) -> bytes:
    """Encode a small synthetic BGR image as JPEG."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, : width // 2] = (40, 120, 200)
    ok, buffer = cv2.imencode(".jpg", pixels)
    assert ok
    return buffer.tobytes()


def person(confidence: float = 0.9, bbox=(10.0, 10.0, 20.0, 30.0)) -> Prediction:
    return Prediction(label="person", confidence=confidence, bbox=bbox)


def make_result(
    count: int,
    timestamp: datetime | None = None,
    camera_id: str = "cam1",
    room_id: str = "room1",
    confidence: float = 0.9,
) -> DetectionResult:
    timestamp = timestamp or datetime.now()
    persons = tuple(
        DetectedPerson(
            id=f"p{i}",
            bbox=(10.0 * i, 10.0, 20.0, 30.0),
            confidence=confidence,
            timestamp=timestamp,
        )
        for i in range(count)
    )
    return DetectionResult(
        detected_persons=persons,
        timestamp=timestamp,
        camera_id=camera_id,
        room_id=room_id,
        frame_width=640,
        frame_height=480,
        processing_time_ms=5.0,
    )


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll until predicate() is true or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class StaticSource:
    """Frame source that always returns the same bytes."""

    def __init__(self, data: bytes | None = None):
        self.data = data if data is not None else make_jpeg()
        self.calls = 0
        self.closed = False

    def acquire(self) -> bytes:
        self.calls += 1
        return self.data

    def close(self) -> None:
        self.closed = True


class FailingSource:
    """Frame source that always raises."""

    def __init__(self, error: Exception | None = None):
        self.error = error or AcquisitionError(
            AcquisitionErrorKind.TIMEOUT, "camera timed out"
        )
        self.calls = 0

    def acquire(self) -> bytes:
        self.calls += 1
        raise self.error


class SlowSource:
    """Frame source that blocks for ``delay`` seconds per acquire."""

    def __init__(self, delay: float, data: bytes | None = None):
        self.delay = delay
        self.data = data if data is not None else make_jpeg()
        self.started = threading.Event()
        self.calls = 0

    def acquire(self) -> bytes:
        self.calls += 1
        self.started.set()
        time.sleep(self.delay)
        return self.data


class ScriptedDetector:
    """
    Detector returning scripted predictions.

    Each detect() pops the next script entry; an Exception entry is raised.
    Once the script is exhausted the default is returned.
    """

    def __init__(self, script=None, default=None, load_error: Exception | None = None):
        self.script = list(script or [])
        self.default = list(default or [])
        self.load_error = load_error
        self.loaded = False
        self.disposed = False
        self.detect_calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    def load(self) -> None:
        if self.load_error is not None:
            raise self.load_error
        self.loaded = True

    def detect(self, pixels: np.ndarray) -> list[Prediction]:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.detect_calls += 1
            entry = self.script.pop(0) if self.script else self.default
        try:
            if not self.loaded:
                raise InferenceError(InferenceErrorKind.MODEL_NOT_LOADED, "not loaded")
            if isinstance(entry, Exception):
                raise entry
            return list(entry)
        finally:
            with self._lock:
                self.active -= 1

    def model_info(self) -> ModelInfo | None:
        if not self.loaded:
            return None
        return ModelInfo(name="scripted", version="test", is_loaded=True)

    def dispose(self) -> None:
        self.loaded = False
        self.disposed = True


class RaisingSink:
    """Sink whose every hook raises."""

    def __init__(self):
        self.calls = 0

    def handle_result(self, result):
        self.calls += 1
        raise RuntimeError("sink down")

    def handle_event(self, event):
        raise RuntimeError("sink down")

    def handle_alert(self, alert):
        raise RuntimeError("sink down")
