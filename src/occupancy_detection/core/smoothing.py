"""
Occupancy smoothing.

Person detectors routinely miss a stationary subject for a frame or two.
The smoother turns raw per-cycle counts into a published count that does not
flicker between N and 0 on those misses.
"""

import time
from collections import deque
from collections.abc import Callable

from ..utils.constants import SMOOTHING_BUFFER_SIZE, SMOOTHING_HOLD_WINDOW_MS


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class OccupancySmoother:
    """
    Debounce raw counts into a stable published count.

    - A positive reading is published immediately and becomes the stable count.
    - A zero reading inside the hold window republishes the stable count.
    - Zero is published once the hold window has elapsed and the ring buffer
      no longer contains a positive reading.
    """

    def __init__(
        self,
        buffer_size: int = SMOOTHING_BUFFER_SIZE,
        hold_window_ms: float = SMOOTHING_HOLD_WINDOW_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        """
        Args:
            buffer_size: Number of raw readings remembered
            hold_window_ms: How long a zero reading is debounced
            clock: Millisecond clock (monotonic by default)
        """
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self.hold_window_ms = hold_window_ms
        self._clock = clock
        self._buffer: deque[int] = deque(maxlen=buffer_size)
        self.last_stable_count = 0
        self.last_stable_timestamp: float | None = None
        self.value = 0

    @property
    def buffer(self) -> tuple[int, ...]:
        return tuple(self._buffer)

    def update(self, raw_count: int, now_ms: float | None = None) -> int:
        """
        Feed one raw count and return the count to publish.

        Args:
            raw_count: Persons detected this cycle
            now_ms: Reading time in milliseconds (defaults to the clock)

        Returns:
            Smoothed count
        """
        if raw_count < 0:
            raise ValueError("raw_count must be >= 0")
        now = self._clock() if now_ms is None else now_ms
        self._buffer.append(raw_count)

        if raw_count > 0:
            self.last_stable_count = raw_count
            self.last_stable_timestamp = now
            self.value = raw_count
            return self.value

        if self.last_stable_timestamp is None:
            self.value = 0
            return self.value

        within_hold = now - self.last_stable_timestamp < self.hold_window_ms
        if within_hold or any(self._buffer):
            self.value = self.last_stable_count
        else:
            self.value = 0
        return self.value

    def reset(self) -> None:
        """Forget all readings (used when detection stops)."""
        self._buffer.clear()
        self.last_stable_count = 0
        self.last_stable_timestamp = None
        self.value = 0
