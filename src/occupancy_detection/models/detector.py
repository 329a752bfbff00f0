"""
Detector Protocol - Common interface for person-detection backends.

Any object-detection model (YOLO, SSD, a remote inference service, ...)
can implement this protocol to be driven by the occupancy tracker.
The tracker only needs labelled, scored boxes; model internals stay opaque.
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class Prediction:
    """
    A single detection returned by a model.

    Attributes:
        label: Class name (e.g. "person")
        confidence: Score in [0, 1]
        bbox: (x, y, width, height) in pixels of the frame passed to detect()
    """

    label: str
    confidence: float
    bbox: tuple[float, float, float, float]


@dataclass
class ModelInfo:
    """Descriptive information about a loaded detection model."""

    name: str
    version: str
    is_loaded: bool
    load_time_ms: float | None = None
    supported_classes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "is_loaded": self.is_loaded,
            "load_time_ms": self.load_time_ms,
            "supported_classes": list(self.supported_classes),
        }


@runtime_checkable
class Detector(Protocol):
    """
    Protocol for detection backends.

    A detector is a shared capability: it is loaded once, reused read-only
    by every cycle (possibly by several trackers), and disposed once.
    Implementations must make detect() safe to call from worker threads.

    Example:
        detector = YoloDetector("yolov8n.pt")
        detector.load()
        predictions = detector.detect(frame.pixels)
        detector.dispose()
    """

    @property
    def is_loaded(self) -> bool:
        """True once load() has succeeded and until dispose()."""
        ...

    def load(self) -> None:
        """
        Load model weights. Calling load() on a loaded detector is a no-op.

        Raises:
            Exception: Any backend error; the tracker treats it as an
                initialization failure
        """
        ...

    def detect(self, pixels: np.ndarray) -> list[Prediction]:
        """
        Run inference on one frame.

        Args:
            pixels: H x W x 3 uint8 image

        Returns:
            All predictions, unfiltered

        Raises:
            InferenceError: If the model is not loaded or the backend fails
        """
        ...

    def model_info(self) -> ModelInfo | None:
        """Describe the model, or None when nothing is loaded."""
        ...

    def dispose(self) -> None:
        """Release model resources."""
        ...
