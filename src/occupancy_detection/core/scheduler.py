"""
Interval Timer

Recurring timer on a daemon thread, built on threading.Event so cancel()
wakes the thread immediately instead of waiting out the interval.
The callback runs on the timer thread and must return quickly; long work is
handed off by the callback itself.
"""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class IntervalTimer:
    """Calls ``callback`` every ``interval_s`` seconds until cancelled."""

    def __init__(self, interval_s: float, callback: Callable[[], None], name: str = "IntervalTimer"):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.interval_s = interval_s
        self._callback = callback
        self._name = name
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._cancelled.is_set()
        )

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("IntervalTimer can only be started once")

        self._thread = threading.Thread(
            target=self._run,
            name=self._name,
            daemon=True,  # Dies with parent process
        )
        self._thread.start()

    def cancel(self, join_timeout: float | None = None) -> None:
        """
        Stop the timer.

        Args:
            join_timeout: Seconds to wait for the thread to exit (None = don't wait)
        """
        self._cancelled.set()  # Wakes thread immediately from wait()
        thread = self._thread
        if (
            join_timeout is not None
            and thread is not None
            and thread is not threading.current_thread()
        ):
            thread.join(timeout=join_timeout)

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval_s):
            self.tick_count += 1
            try:
                self._callback()
            except Exception as e:
                # A broken tick must not kill the timer
                logger.error(f"{self._name} tick failed: {e}", exc_info=True)
