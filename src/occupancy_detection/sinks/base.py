"""
Sink protocol and the in-process callback sink.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..models import DetectionEvent, DetectionResult

if TYPE_CHECKING:
    from ..core.alerts import OccupancyAlert


@runtime_checkable
class EventSink(Protocol):
    """Receiver for tracker output."""

    def handle_result(self, result: DetectionResult) -> None: ...

    def handle_event(self, event: DetectionEvent) -> None: ...

    def handle_alert(self, alert: "OccupancyAlert") -> None: ...


class CallbackSink:
    """Forward tracker output to plain callables (any may be None)."""

    def __init__(
        self,
        on_result: Callable[[DetectionResult], None] | None = None,
        on_event: Callable[[DetectionEvent], None] | None = None,
        on_alert: Callable[["OccupancyAlert"], None] | None = None,
    ):
        self._on_result = on_result
        self._on_event = on_event
        self._on_alert = on_alert

    def handle_result(self, result: DetectionResult) -> None:
        if self._on_result:
            self._on_result(result)

    def handle_event(self, event: DetectionEvent) -> None:
        if self._on_event:
            self._on_event(event)

    def handle_alert(self, alert: "OccupancyAlert") -> None:
        if self._on_alert:
            self._on_alert(alert)


