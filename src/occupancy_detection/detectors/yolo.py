"""
YOLO Detector

Binds the Detector protocol to an Ultralytics YOLO model. One instance is
loaded once and shared by every tracker in the process; inference calls are
serialized with a lock because the model object is not re-entrant.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import logging
import threading
import time

import numpy as np
import torch
import ultralytics
from ultralytics import YOLO

from ..errors import InferenceError, InferenceErrorKind
from ..models import ModelInfo, Prediction

logger = logging.getLogger(__name__)


class YoloDetector:
    """Person-capable object detector backed by Ultralytics YOLO."""

    def __init__(
        self,
        model_file: str,
        device: str | None = None,
        min_confidence: float = 0.05,
    ):
        """
        Args:
            model_file: YOLO weights (.pt)
            device: "cuda", "cpu", or None to pick CUDA when available
            min_confidence: Backend floor; the tracker applies its own threshold
        """
        self.model_file = model_file
        self.device = device
        self.min_confidence = min_confidence
        self._model: YOLO | None = None
        self._load_time_ms: float | None = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        with self._lock:
            if self._model is not None:
                return

            device = self.device or ("cuda" if torch.cuda.is_available() else "cpu")
            start = time.perf_counter()
            model = YOLO(self.model_file)
            model.to(device)
            self._load_time_ms = (time.perf_counter() - start) * 1000
            self.device = device
            self._model = model

        logger.info(f"Model initialized: {self.model_file} ({self._load_time_ms:.0f}ms)")
        logger.info(f"Device: {device}")
        if device == "cuda":
            logger.info(f"GPU: {torch.cuda.get_device_name(0)}")
        else:
            logger.warning("Running on CPU - performance will be slow")

    def detect(self, pixels: np.ndarray) -> list[Prediction]:
        with self._lock:
            if self._model is None:
                raise InferenceError(
                    InferenceErrorKind.MODEL_NOT_LOADED, "YOLO model not loaded"
                )
            try:
                results = self._model.predict(
                    source=pixels,
                    conf=self.min_confidence,
                    device=self.device,
                    verbose=False,
                )
            except Exception as e:
                raise InferenceError(
                    InferenceErrorKind.BACKEND_FAILURE, f"YOLO inference failed: {e}"
                ) from e

        return self._to_predictions(results)

    @staticmethod
    def _to_predictions(results) -> list[Prediction]:
        """Convert YOLO results (xyxy boxes) into (x, y, w, h) predictions."""
        if not results:
            return []

        result = results[0]
        boxes = result.boxes
        if boxes is None or boxes.cls is None or len(boxes.cls) == 0:
            return []

        names = result.names
        classes = boxes.cls.int().cpu().tolist()
        confs = boxes.conf.cpu().tolist()
        xyxy = boxes.xyxy.cpu().numpy()

        predictions = []
        for obj_class, conf, box in zip(classes, confs, xyxy):
            x1, y1, x2, y2 = (float(v) for v in box)
            predictions.append(
                Prediction(
                    label=names.get(obj_class, str(obj_class)),
                    confidence=float(conf),
                    bbox=(x1, y1, x2 - x1, y2 - y1),
                )
            )
        return predictions

    def model_info(self) -> ModelInfo | None:
        model = self._model
        if model is None:
            return None
        return ModelInfo(
            name=f"YOLO ({os.path.basename(self.model_file)})",
            version=ultralytics.__version__,
            is_loaded=True,
            load_time_ms=self._load_time_ms,
            supported_classes=list(model.names.values()),
        )

    def dispose(self) -> None:
        with self._lock:
            if self._model is None:
                return
            self._model = None
        if self.device == "cuda":
            torch.cuda.empty_cache()
        logger.info(f"Model disposed: {self.model_file}")
