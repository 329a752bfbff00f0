"""
Tracking IDs - weak association of detections across frames.

The default assigner buckets a box's centre and size into a coarse grid and
hashes the bucket. Two detections in consecutive frames get the same ID when
the person barely moved. This is association by proximity, not identity: IDs
collide for people standing close together and change when someone moves
more than a bucket. A real tracker (IoU matching, Kalman filter) can replace
it by implementing TrackIdAssigner.
"""

from typing import Protocol

from ..utils.constants import TRACK_POSITION_BUCKET, TRACK_SIZE_BUCKET


class TrackIdAssigner(Protocol):
    """Assigns a tracking ID to each person box in a frame."""

    def assign(self, bbox: tuple[float, float, float, float]) -> str:
        """
        Args:
            bbox: (x, y, width, height) in source-frame pixels

        Returns:
            Tracking ID string
        """
        ...


class ProximityTracker:
    """Tracking IDs from position/size buckets."""

    def __init__(
        self,
        position_bucket: int = TRACK_POSITION_BUCKET,
        size_bucket: int = TRACK_SIZE_BUCKET,
    ):
        self.position_bucket = position_bucket
        self.size_bucket = size_bucket

    def assign(self, bbox: tuple[float, float, float, float]) -> str:
        x, y, width, height = bbox
        center_x = x + width / 2
        center_y = y + height / 2

        bucket_hash = abs(
            int(center_x // self.position_bucket) * 1000
            + int(center_y // self.position_bucket) * 100
            + int(width // self.size_bucket) * 10
            + int(height // self.size_bucket)
        )
        return f"track_{bucket_hash}"
