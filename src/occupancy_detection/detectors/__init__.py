"""
Detection backends implementing the Detector protocol.

Backends are imported lazily by name so importing the package does not pull
in torch.
"""

from ..models import Detector


def build_detector(model_file: str, device: str | None = None) -> Detector:
    """Create the YOLO detector (not yet loaded)."""
    from .yolo import YoloDetector

    return YoloDetector(model_file, device=device)


__all__ = ["build_detector"]
