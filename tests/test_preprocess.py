"""
Tests for frame decoding and validation
"""

import unittest

import cv2
import numpy as np
from fixtures import make_jpeg

from occupancy_detection.core import FramePreprocessor
from occupancy_detection.errors import PreprocessError, PreprocessErrorKind


class TestFramePreprocessor(unittest.TestCase):

    def test_decode_jpeg(self):
        frame = FramePreprocessor().decode(make_jpeg(64, 48))

        self.assertEqual(frame.pixels.shape, (48, 64, 3))
        self.assertEqual(frame.pixels.dtype, np.uint8)
        self.assertEqual((frame.source_width, frame.source_height), (64, 48))
        self.assertEqual(frame.scale, 1.0)

    def test_decode_png(self):
        ok, buffer = cv2.imencode(".png", np.full((10, 20, 3), 128, dtype=np.uint8))
        self.assertTrue(ok)

        frame = FramePreprocessor().decode(buffer.tobytes())

        self.assertEqual(frame.pixels.shape, (10, 20, 3))

    def test_grayscale_rejected(self):
        ok, buffer = cv2.imencode(".png", np.zeros((10, 10), dtype=np.uint8))
        self.assertTrue(ok)

        with self.assertRaises(PreprocessError) as ctx:
            FramePreprocessor().decode(buffer.tobytes())

        self.assertEqual(ctx.exception.kind, PreprocessErrorKind.INVALID_SHAPE)

    def test_alpha_channel_rejected(self):
        ok, buffer = cv2.imencode(".png", np.zeros((10, 10, 4), dtype=np.uint8))
        self.assertTrue(ok)

        with self.assertRaises(PreprocessError) as ctx:
            FramePreprocessor().decode(buffer.tobytes())

        self.assertEqual(ctx.exception.kind, PreprocessErrorKind.INVALID_SHAPE)

    def test_garbage_rejected(self):
        with self.assertRaises(PreprocessError) as ctx:
            FramePreprocessor().decode(b"not an image at all, just some bytes")

        self.assertEqual(ctx.exception.kind, PreprocessErrorKind.DECODE_FAILED)

    def test_empty_rejected(self):
        with self.assertRaises(PreprocessError) as ctx:
            FramePreprocessor().decode(b"")

        self.assertEqual(ctx.exception.kind, PreprocessErrorKind.EMPTY_DIMENSIONS)

    def test_validate_empty_dimensions(self):
        with self.assertRaises(PreprocessError) as ctx:
            FramePreprocessor.validate(np.zeros((0, 10, 3), dtype=np.uint8))

        self.assertEqual(ctx.exception.kind, PreprocessErrorKind.EMPTY_DIMENSIONS)

    def test_downscale(self):
        frame = FramePreprocessor(max_dimension=32).decode(make_jpeg(64, 48))

        self.assertEqual(frame.pixels.shape, (24, 32, 3))
        self.assertEqual(frame.scale, 2.0)
        self.assertEqual(frame.to_source_coords((1, 2, 3, 4)), (2, 4, 6, 8))

    def test_small_frames_not_upscaled(self):
        frame = FramePreprocessor(max_dimension=640).decode(make_jpeg(64, 48))

        self.assertEqual(frame.pixels.shape, (48, 64, 3))


class TestDecodedFrame(unittest.TestCase):
    """Test the cycle-scoped frame buffer."""

    def test_released_after_with_block(self):
        with FramePreprocessor().decode(make_jpeg()) as frame:
            self.assertFalse(frame.released)
            frame.pixels

        self.assertTrue(frame.released)
        with self.assertRaises(RuntimeError):
            frame.pixels

    def test_released_when_block_raises(self):
        with self.assertRaises(ValueError):
            with FramePreprocessor().decode(make_jpeg()) as frame:
                raise ValueError("detector blew up")

        self.assertTrue(frame.released)


if __name__ == "__main__":
    unittest.main()
