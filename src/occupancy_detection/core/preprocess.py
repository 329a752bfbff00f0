"""
Frame decoding and validation.

Turns encoded camera bytes into the H x W x 3 array the detector consumes.
The decoded array is owned by a DecodedFrame for the duration of one cycle
and released when the cycle's ``with`` block exits, however it exits.
"""

import logging

import cv2
import numpy as np

from ..errors import PreprocessError, PreprocessErrorKind

logger = logging.getLogger(__name__)


class DecodedFrame:
    """
    Cycle-scoped owner of a decoded pixel buffer.

    Use as a context manager; the buffer is dropped on exit and any later
    access raises RuntimeError.
    """

    def __init__(self, pixels: np.ndarray, source_width: int, source_height: int):
        self._pixels: np.ndarray | None = pixels
        self.source_width = source_width
        self.source_height = source_height
        self.height, self.width = pixels.shape[:2]

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RuntimeError("Frame buffer already released")
        return self._pixels

    @property
    def released(self) -> bool:
        return self._pixels is None

    @property
    def scale(self) -> float:
        """Ratio of source size to decoded size (1.0 when not resized)."""
        return self.source_width / self.width

    def to_source_coords(
        self, bbox: tuple[float, float, float, float]
    ) -> tuple[float, float, float, float]:
        """Map an (x, y, w, h) box from decoded to source-frame pixels."""
        s = self.scale
        x, y, w, h = bbox
        return (x * s, y * s, w * s, h * s)

    def release(self) -> None:
        self._pixels = None

    def __enter__(self) -> "DecodedFrame":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class FramePreprocessor:
    """Decode, validate and optionally downscale camera frames."""

    def __init__(self, max_dimension: int | None = None):
        """
        Args:
            max_dimension: If set, frames whose longest side exceeds this are
                downscaled (aspect preserved) before inference
        """
        self.max_dimension = max_dimension

    def decode(self, data: bytes) -> DecodedFrame:
        """
        Decode encoded image bytes into a DecodedFrame.

        Args:
            data: JPEG/PNG/BMP/WebP bytes

        Returns:
            DecodedFrame holding a uint8 H x W x 3 array (BGR channel order)

        Raises:
            PreprocessError: decode_failed, empty_dimensions or invalid_shape
        """
        buffer = np.frombuffer(data, dtype=np.uint8)
        if buffer.size == 0:
            raise PreprocessError(PreprocessErrorKind.EMPTY_DIMENSIONS, "Empty buffer")

        # IMREAD_UNCHANGED keeps grayscale/alpha images visible to validation
        pixels = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
        if pixels is None:
            raise PreprocessError(
                PreprocessErrorKind.DECODE_FAILED, "Image data could not be decoded"
            )

        self.validate(pixels)
        source_height, source_width = pixels.shape[:2]

        if pixels.dtype != np.uint8:
            pixels = cv2.convertScaleAbs(pixels, alpha=255.0 / max(int(pixels.max()), 1))

        pixels = self._resize(pixels)
        return DecodedFrame(np.ascontiguousarray(pixels), source_width, source_height)

    @staticmethod
    def validate(pixels: np.ndarray) -> None:
        """
        Check an array is a non-empty three-channel image.

        Raises:
            PreprocessError: invalid_shape or empty_dimensions
        """
        if pixels.ndim != 3:
            raise PreprocessError(
                PreprocessErrorKind.INVALID_SHAPE,
                f"Expected H x W x 3 image, got shape {pixels.shape}",
            )
        height, width, channels = pixels.shape
        if height <= 0 or width <= 0:
            raise PreprocessError(
                PreprocessErrorKind.EMPTY_DIMENSIONS,
                f"Image has empty dimensions {width}x{height}",
            )
        if channels != 3:
            raise PreprocessError(
                PreprocessErrorKind.INVALID_SHAPE,
                f"Expected 3 channels, got {channels}",
            )

    def _resize(self, pixels: np.ndarray) -> np.ndarray:
        if not self.max_dimension:
            return pixels

        height, width = pixels.shape[:2]
        longest = max(height, width)
        if longest <= self.max_dimension:
            return pixels

        ratio = self.max_dimension / longest
        size = (max(1, round(width * ratio)), max(1, round(height * ratio)))
        logger.debug(f"Resizing frame {width}x{height} -> {size[0]}x{size[1]}")
        return cv2.resize(pixels, size, interpolation=cv2.INTER_AREA)
