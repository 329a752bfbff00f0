"""
Sink Dispatcher - Delivers cycle output to sinks off the detection path.

The tracker enqueues one delivery per completed cycle and returns at once.
A single daemon thread drains the queue in order and calls every sink, so a
slow or unreachable sink (a webhook retrying with backoff) delays only later
deliveries, never the next detection cycle.

When the queue is full new deliveries are dropped and counted.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..models import DetectionEvent, DetectionResult
from ..utils.constants import SINK_DRAIN_TIMEOUT_S, SINK_QUEUE_SIZE
from .base import EventSink

if TYPE_CHECKING:
    from ..core.alerts import OccupancyAlert

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """Output of one completed cycle."""

    result: DetectionResult
    event: DetectionEvent | None = None
    alerts: list["OccupancyAlert"] = field(default_factory=list)


class SinkDispatcher:
    """Bounded queue plus worker thread feeding a list of sinks."""

    def __init__(
        self,
        sinks: list[EventSink],
        max_queue_size: int = SINK_QUEUE_SIZE,
        name: str = "sinks",
    ):
        self.sinks = list(sinks)
        self.dropped = 0
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._closed = False
        self._thread: threading.Thread | None = None
        if self.sinks:
            self._thread = threading.Thread(
                target=self._run, name=f"dispatch-{name}", daemon=True
            )
            self._thread.start()

    def submit(self, delivery: Delivery) -> bool:
        """
        Queue a delivery without blocking.

        Returns:
            False if there are no sinks, the dispatcher is closed or the
            queue is full
        """
        if self._thread is None or self._closed:
            return False
        try:
            self._queue.put_nowait(delivery)
        except queue.Full:
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                logger.warning(
                    f"Sink queue full - dropped {self.dropped} deliveries so far"
                )
            return False
        return True

    def flush(self, timeout: float | None = SINK_DRAIN_TIMEOUT_S) -> bool:
        """Wait until every delivery queued so far has been handled."""
        if self._thread is None or not self._thread.is_alive():
            return True
        marker = threading.Event()
        try:
            self._queue.put(marker, timeout=timeout)
        except queue.Full:
            return False
        return marker.wait(timeout)

    def close(self, wait: bool = True, timeout: float = SINK_DRAIN_TIMEOUT_S) -> None:
        """Stop accepting deliveries; optionally drain what is pending."""
        if self._closed:
            return
        self._closed = True
        if self._thread is None:
            return
        try:
            self._queue.put(None, timeout=timeout if wait else 0)
        except queue.Full:
            logger.warning("Sink queue still full at shutdown - pending deliveries lost")
            return
        if wait:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(
                    f"Sinks still busy after {timeout}s - pending deliveries lost"
                )

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            if isinstance(item, threading.Event):
                item.set()
                continue
            self._deliver(item)

    def _deliver(self, delivery: Delivery) -> None:
        for sink in self.sinks:
            try:
                sink.handle_result(delivery.result)
                if delivery.event is not None:
                    sink.handle_event(delivery.event)
                for alert in delivery.alerts:
                    sink.handle_alert(alert)
            except Exception as e:
                logger.error(f"Sink {type(sink).__name__} failed: {e}", exc_info=True)
