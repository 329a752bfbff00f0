"""
Occupancy Tracker - Orchestrates detection cycles for one camera.

One cycle: acquire frame -> decode -> detect people -> build result ->
smooth, derive events, update stats, evaluate alerts -> subscribers, and
a queued delivery to the sinks (handled on the dispatcher thread).

Concurrency:
- An IntervalTimer thread ticks every detection_interval_ms.
- Each tick hands the cycle to a single worker thread. A non-blocking lock is
  the in-flight guard: a tick that fires while a cycle is running is dropped,
  never queued.
- Control calls (stop, toggle, update_config) only take the short state lock,
  so they never wait for a cycle. A cycle that finishes after stop has its
  result discarded.

Errors raised anywhere inside a cycle are classified and recorded at one
boundary (_run_cycle); they never stop the timer or reach the caller.
"""

import logging
import threading
import time
import uuid
from collections import Counter, deque
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from ..config.schemas import Config, DetectionConfig, ErrorPolicyConfig
from ..errors import OccupancyError, classify
from ..models import (
    DetectedPerson,
    DetectionEvent,
    DetectionResult,
    DetectionStats,
    Detector,
    ModelInfo,
    Prediction,
)
from ..sinks import Delivery, EventSink, SinkDispatcher, build_sinks
from ..utils.constants import (
    HISTORY_SIZE,
    PERSON_LABEL,
    RECENT_EVENTS_LIMIT,
    SINK_DRAIN_TIMEOUT_S,
    STATUS_REPORT_INTERVAL,
)
from .alerts import OccupancyAlert, evaluate_alerts
from .camera import FrameSource, build_frame_source, validate_image_bytes
from .events import EventDeriver
from .preprocess import DecodedFrame, FramePreprocessor
from .scheduler import IntervalTimer
from .smoothing import OccupancySmoother
from .stats import StatsAggregator
from .tracking import ProximityTracker, TrackIdAssigner

logger = logging.getLogger(__name__)


class TrackerState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    DETECTING = "detecting"
    ERROR = "error"


class AppState(str, Enum):
    """Host process lifecycle state."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


_SUSPENDED_STATES = (AppState.INACTIVE, AppState.BACKGROUND)


@dataclass
class CycleDiagnostics:
    """Counters describing cycle outcomes since the tracker was created."""

    cycles_started: int = 0
    cycles_completed: int = 0
    cycles_failed: int = 0
    cycles_discarded: int = 0
    ticks_dropped: int = 0
    sink_deliveries_dropped: int = 0
    consecutive_failures: int = 0
    failures_by_code: Counter = field(default_factory=Counter)
    last_error: OccupancyError | None = None
    last_error_time: datetime | None = None

    def snapshot(self) -> "CycleDiagnostics":
        return replace(self, failures_by_code=Counter(self.failures_by_code))

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycles_started": self.cycles_started,
            "cycles_completed": self.cycles_completed,
            "cycles_failed": self.cycles_failed,
            "cycles_discarded": self.cycles_discarded,
            "ticks_dropped": self.ticks_dropped,
            "sink_deliveries_dropped": self.sink_deliveries_dropped,
            "consecutive_failures": self.consecutive_failures,
            "failures_by_code": dict(self.failures_by_code),
            "last_error": self.last_error.code if self.last_error else None,
        }


@dataclass(frozen=True)
class TrackerNotification:
    """
    Message delivered to subscribers.

    type is one of: detection_result, entered, exited, count_changed,
    alert, error.
    """

    type: str
    camera_id: str
    room_id: str
    data: Any
    timestamp: datetime = field(default_factory=datetime.now)


class _BytesSource:
    """Wrap an already-fetched frame so it flows through the normal cycle."""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def acquire(self) -> bytes:
        return validate_image_bytes(self._data)


class OccupancyTracker:
    """
    Real-time occupancy tracking for one camera.

    The detector is injected and may be shared with other trackers; the
    tracker calls load() during initialize() and never disposes it unless
    asked to in close(). The frame source is closed with the tracker only when
    owns_source is set.
    """

    def __init__(
        self,
        detector: Detector,
        frame_source: FrameSource,
        camera_id: str,
        room_id: str,
        config: DetectionConfig | None = None,
        *,
        preprocessor: FramePreprocessor | None = None,
        smoother: OccupancySmoother | None = None,
        stats_aggregator: StatsAggregator | None = None,
        track_ids: TrackIdAssigner | None = None,
        sinks: Iterable[EventSink] = (),
        history_size: int = HISTORY_SIZE,
        recent_events_limit: int = RECENT_EVENTS_LIMIT,
        allow_background: bool = False,
        error_policy: ErrorPolicyConfig | None = None,
        owns_source: bool = False,
    ):
        self.camera_id = camera_id
        self.room_id = room_id
        self.allow_background = allow_background

        self._detector = detector
        self._frame_source = frame_source
        self._owns_source = owns_source
        self._config = config or DetectionConfig()
        self._preprocessor = preprocessor or FramePreprocessor()
        self._smoother = smoother or OccupancySmoother()
        self._stats_aggregator = stats_aggregator or StatsAggregator()
        self._track_ids = track_ids or ProximityTracker()
        self._dispatcher = SinkDispatcher(list(sinks), name=camera_id)
        self._error_policy = error_policy or ErrorPolicyConfig()

        # State (guarded by _lock)
        self._lock = threading.RLock()
        self._state = TrackerState.IDLE
        self._is_initialized = False
        self._is_detecting = False
        self._error: str | None = None
        self._model_info: ModelInfo | None = None
        self._current_result: DetectionResult | None = None
        self._previous_result: DetectionResult | None = None
        self._history: deque[DetectionResult] = deque(maxlen=history_size)
        self._recent_events: deque[DetectionEvent] = deque(maxlen=recent_events_limit)
        self._stats = DetectionStats.empty()
        self._diagnostics = CycleDiagnostics()
        self._subscribers: list[Callable[[TrackerNotification], None]] = []
        self._app_state = AppState.ACTIVE
        self._resume_on_active = False

        # Scheduling
        self._timer: IntervalTimer | None = None
        self._generation = 0  # Bumped on every start/stop; stale cycles are discarded
        self._cycle_guard = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"cycle-{camera_id}"
        )
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: Config,
        detector: Detector,
        frame_source: FrameSource | None = None,
        sinks: Iterable[EventSink] | None = None,
    ) -> "OccupancyTracker":
        """
        Build a tracker from a validated application config.

        Args:
            config: Parsed configuration
            detector: Shared detector capability
            frame_source: Override the source described by config.camera
            sinks: Override the sinks described by config.output
        """
        tracker_cfg = config.tracker
        return cls(
            detector,
            frame_source if frame_source is not None else build_frame_source(config.camera),
            config.camera.camera_id,
            config.camera.room_id,
            config.detection,
            preprocessor=FramePreprocessor(tracker_cfg.max_dimension),
            smoother=OccupancySmoother(
                config.smoothing.buffer_size, config.smoothing.hold_window_ms
            ),
            stats_aggregator=StatsAggregator(tracker_cfg.stats_window_hours),
            sinks=build_sinks(config.output) if sinks is None else sinks,
            history_size=tracker_cfg.history_size,
            recent_events_limit=tracker_cfg.recent_events_limit,
            allow_background=tracker_cfg.allow_background,
            error_policy=tracker_cfg.errors,
            owns_source=frame_source is None,
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        with self._lock:
            return self._state

    @property
    def is_initialized(self) -> bool:
        with self._lock:
            return self._is_initialized

    @property
    def is_detecting(self) -> bool:
        with self._lock:
            return self._is_detecting

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    @property
    def config(self) -> DetectionConfig:
        with self._lock:
            return self._config

    @property
    def current_result(self) -> DetectionResult | None:
        with self._lock:
            return self._current_result

    @property
    def people_count(self) -> int:
        """Smoothed occupancy count."""
        with self._lock:
            return self._smoother.value

    @property
    def detected_persons(self) -> tuple[DetectedPerson, ...]:
        with self._lock:
            if self._current_result is None:
                return ()
            return self._current_result.detected_persons

    @property
    def is_person_detected(self) -> bool:
        return len(self.detected_persons) > 0

    @property
    def history(self) -> tuple[DetectionResult, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def recent_events(self) -> tuple[DetectionEvent, ...]:
        """Most recent events, newest first."""
        with self._lock:
            return tuple(self._recent_events)

    @property
    def stats(self) -> DetectionStats:
        with self._lock:
            return self._stats

    @property
    def model_info(self) -> ModelInfo | None:
        with self._lock:
            return self._model_info

    @property
    def diagnostics(self) -> CycleDiagnostics:
        with self._lock:
            snapshot = self._diagnostics.snapshot()
        snapshot.sink_deliveries_dropped = self._dispatcher.dropped
        return snapshot

    def counts_for_time_range(self, minutes: float) -> list[int]:
        return StatsAggregator.counts_for_time_range(self.history, minutes)

    def average_count_for_hour(self, hour: int) -> float:
        return StatsAggregator.average_count_for_hour(self.history, hour)

    def subscribe(
        self, callback: Callable[[TrackerNotification], None]
    ) -> Callable[[], None]:
        """
        Register a callback for tracker notifications.

        Callbacks run on the cycle worker thread and should return quickly.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        """
        Load the detector and make the tracker ready.

        Returns:
            True on success. On failure the tracker enters ERROR with a
            message and stays there until initialize() succeeds.
        """
        with self._lock:
            if self._state == TrackerState.INITIALIZING:
                logger.warning("Initialization already in progress")
                return False
            if self._is_initialized and self._state != TrackerState.ERROR:
                return True
            self._set_state(TrackerState.INITIALIZING)
            self._error = None

        try:
            self._detector.load()
            model_info = self._detector.model_info()
        except Exception as e:
            message = f"Initialization failed: {e}"
            logger.error(message, exc_info=True)
            with self._lock:
                self._is_initialized = False
                self._error = message
                self._set_state(TrackerState.ERROR)
            self._notify([self._notification("error", message)])
            return False

        with self._lock:
            self._is_initialized = True
            self._model_info = model_info
            self._diagnostics.consecutive_failures = 0
            self._set_state(TrackerState.IDLE)
        logger.info(f"[{self.camera_id}] Tracker initialized")
        return True

    def start_detection(self) -> bool:
        """
        Start recurring detection.

        Returns:
            True if detection is running after the call
        """
        with self._lock:
            if self._closed:
                logger.warning("Cannot start detection: tracker closed")
                return False
            if self._is_detecting:
                return True
            if not self._is_initialized or self._state in (
                TrackerState.ERROR,
                TrackerState.INITIALIZING,
            ):
                logger.warning(f"Cannot start detection: tracker {self._state.value}")
                return False
            if not self._config.enabled:
                logger.info("Detection disabled in config; not starting")
                return False

            self._is_detecting = True
            self._generation += 1
            self._diagnostics.consecutive_failures = 0
            self._install_timer()
            self._set_state(TrackerState.DETECTING)

        logger.info(
            f"[{self.camera_id}] Detection started "
            f"(every {self._config.detection_interval_ms}ms)"
        )
        return True

    def stop_detection(self) -> None:
        """Stop recurring detection. Calling it when stopped does nothing."""
        with self._lock:
            if not self._is_detecting:
                return
            self._stop_locked()
            if self._state == TrackerState.DETECTING:
                self._set_state(TrackerState.IDLE)
        logger.info(f"[{self.camera_id}] Detection stopped")

    def toggle_detection(self) -> bool:
        """Start if stopped, stop if running. Returns the new is_detecting."""
        with self._lock:
            if self._is_detecting:
                self.stop_detection()
                return False
            return self.start_detection()

    def process_frame(
        self, source: FrameSource | bytes | None = None
    ) -> DetectionResult | None:
        """
        Run exactly one detection cycle now, outside the recurring timer.

        Waits for an in-flight cycle to finish first, so cycles never overlap.

        Args:
            source: Frame source or encoded image bytes (defaults to the
                tracker's own source)

        Returns:
            The published result, or None if the cycle failed or the tracker
            is not ready
        """
        with self._lock:
            if not self._is_initialized or self._state == TrackerState.ERROR:
                logger.warning("Tracker not ready for detection")
                return None
            if not self._config.enabled:
                return None

        if isinstance(source, (bytes, bytearray)):
            source = _BytesSource(source)

        self._cycle_guard.acquire()
        entered_detecting = False
        try:
            with self._lock:
                if self._state == TrackerState.IDLE:
                    self._set_state(TrackerState.DETECTING)
                    entered_detecting = True
            return self._run_cycle(source or self._frame_source, generation=None)
        finally:
            with self._lock:
                if (
                    entered_detecting
                    and not self._is_detecting
                    and self._state == TrackerState.DETECTING
                ):
                    self._set_state(TrackerState.IDLE)
            self._cycle_guard.release()

    def update_config(
        self, partial: dict[str, Any] | None = None, **changes: Any
    ) -> DetectionConfig:
        """
        Merge new detection settings into the current config.

        Changing detection_interval_ms while running recreates the timer;
        disabling detection while running stops it.

        Returns:
            The new config

        Raises:
            ConfigError: If the merged config is invalid (config unchanged)
        """
        updates = {**(partial or {}), **changes}
        with self._lock:
            new_config = self._config.merged(updates)
            old_config = self._config
            self._config = new_config

            if self._is_detecting:
                if not new_config.enabled:
                    self._stop_locked()
                    self._set_state(TrackerState.IDLE)
                    logger.info(f"[{self.camera_id}] Detection disabled by config update")
                elif new_config.detection_interval_ms != old_config.detection_interval_ms:
                    self._cancel_timer()
                    self._install_timer()
                    logger.info(
                        f"[{self.camera_id}] Detection interval "
                        f"{old_config.detection_interval_ms}ms -> "
                        f"{new_config.detection_interval_ms}ms"
                    )
        return new_config

    def clear_history(self) -> None:
        """Drop history, recent events and stats."""
        with self._lock:
            self._history.clear()
            self._recent_events.clear()
            self._stats = DetectionStats.empty()
            self._previous_result = None

    def handle_app_state(self, app_state: AppState) -> None:
        """
        React to host lifecycle changes.

        Suspension pauses detection unless allow_background is set; returning
        to ACTIVE resumes only if detection was running when suspended.
        """
        resume = False
        with self._lock:
            previous = self._app_state
            self._app_state = app_state
            if app_state in _SUSPENDED_STATES:
                if previous not in _SUSPENDED_STATES and not self.allow_background:
                    self._resume_on_active = self._is_detecting
                    if self._is_detecting:
                        logger.info(f"[{self.camera_id}] Host suspended - pausing detection")
                        self.stop_detection()
            elif previous in _SUSPENDED_STATES:
                resume = self._resume_on_active
                self._resume_on_active = False

        if resume:
            logger.info(f"[{self.camera_id}] Host active - resuming detection")
            self.start_detection()

    def close(self, dispose_detector: bool = False, wait: bool = True) -> None:
        """
        Stop detection and release the cycle worker, the sink dispatcher and
        an owned frame source.

        Args:
            dispose_detector: Also dispose the (possibly shared) detector
            wait: Wait for an in-flight cycle and pending sink deliveries
        """
        with self._lock:
            if self._closed:
                return
            self.stop_detection()
            self._closed = True
        self._executor.shutdown(wait=wait)
        self._dispatcher.close(wait=wait)
        if self._owns_source:
            close_source = getattr(self._frame_source, "close", None)
            if close_source is not None:
                try:
                    close_source()
                except Exception as e:
                    logger.warning(f"[{self.camera_id}] Error closing frame source: {e}")
        if dispose_detector:
            self._detector.dispose()

    def flush_sinks(self, timeout: float | None = SINK_DRAIN_TIMEOUT_S) -> bool:
        """Block until sink deliveries queued so far are handled."""
        return self._dispatcher.flush(timeout)

    def __enter__(self) -> "OccupancyTracker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _install_timer(self) -> None:
        self._timer = IntervalTimer(
            self._config.detection_interval_ms / 1000.0,
            self._on_tick,
            name=f"DetectionTimer-{self.camera_id}",
        )
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            # Never join here: the timer thread may be waiting on _lock
            self._timer.cancel()
            self._timer = None

    def _stop_locked(self) -> None:
        self._is_detecting = False
        self._generation += 1
        self._cancel_timer()
        self._smoother.reset()
        self._current_result = None

    def _on_tick(self) -> None:
        with self._lock:
            if not self._is_detecting:
                return
            generation = self._generation

        if not self._cycle_guard.acquire(blocking=False):
            with self._lock:
                self._diagnostics.ticks_dropped += 1
            logger.debug("Previous cycle still running; tick dropped")
            return

        try:
            self._executor.submit(self._timed_cycle, generation)
        except RuntimeError:
            # Executor shut down between the state check and submit
            self._cycle_guard.release()

    def _timed_cycle(self, generation: int) -> None:
        try:
            self._run_cycle(self._frame_source, generation)
        finally:
            self._cycle_guard.release()

    # ------------------------------------------------------------------
    # Detection cycle
    # ------------------------------------------------------------------

    def _run_cycle(
        self, source: FrameSource, generation: int | None
    ) -> DetectionResult | None:
        """
        Execute one cycle. Caller must hold the cycle guard.

        Args:
            source: Where to get the frame
            generation: Run generation for timer cycles, None for on-demand

        Returns:
            Published result, or None if the cycle failed or was discarded
        """
        config = self.config
        with self._lock:
            self._diagnostics.cycles_started += 1

        start = time.perf_counter()
        stage = "acquire"
        try:
            data = source.acquire()
            stage = "preprocess"
            with self._preprocessor.decode(data) as frame:
                stage = "detect"
                predictions = self._detector.detect(frame.pixels)
                result = self._build_result(predictions, frame, config, start)
        except Exception as e:
            self._record_failure(classify(e, stage), generation)
            return None

        return self._publish(result, config, generation)

    def _build_result(
        self,
        predictions: list[Prediction],
        frame: DecodedFrame,
        config: DetectionConfig,
        start: float,
    ) -> DetectionResult:
        timestamp = datetime.now()
        frame_id = uuid.uuid4().hex[:12]

        persons = []
        for prediction in predictions:
            if prediction.label != PERSON_LABEL:
                continue
            if not 0.0 <= prediction.confidence <= 1.0:
                continue
            if prediction.confidence < config.confidence_threshold:
                continue

            bbox = frame.to_source_coords(prediction.bbox)
            persons.append(
                DetectedPerson(
                    id=f"{self.camera_id}_{frame_id}_{len(persons)}",
                    bbox=bbox,
                    confidence=prediction.confidence,
                    timestamp=timestamp,
                    tracking_id=(
                        self._track_ids.assign(bbox) if config.tracking_enabled else None
                    ),
                )
            )

        return DetectionResult(
            detected_persons=tuple(persons),
            timestamp=timestamp,
            camera_id=self.camera_id,
            room_id=self.room_id,
            frame_width=frame.source_width,
            frame_height=frame.source_height,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            frame_id=frame_id,
        )

    def _publish(
        self,
        result: DetectionResult,
        config: DetectionConfig,
        generation: int | None,
    ) -> DetectionResult | None:
        with self._lock:
            if generation is not None and (
                not self._is_detecting or generation != self._generation
            ):
                self._diagnostics.cycles_discarded += 1
                logger.debug("Cycle finished after stop; result discarded")
                return None

            diagnostics = self._diagnostics
            diagnostics.cycles_completed += 1
            diagnostics.consecutive_failures = 0
            if self._error_policy.surface_cycle_errors and self._state != TrackerState.ERROR:
                self._error = None

            previous = self._previous_result
            self._smoother.update(result.person_count)
            self._current_result = result
            self._previous_result = result
            self._history.append(result)

            comparison = EventDeriver.compare(previous, result)
            event = None
            if comparison.has_changed and comparison.event_type and config.save_detection_events:
                event = EventDeriver.create_event(previous, result, comparison.event_type)
                self._recent_events.appendleft(event)

            alerts = evaluate_alerts(comparison, previous, result, config)
            self._stats = self._stats_aggregator.calculate(self._history)

            completed = diagnostics.cycles_completed
            people_count = self._smoother.value

        self._dispatcher.submit(Delivery(result, event, alerts))

        notifications = [self._notification("detection_result", result)]
        if event is not None:
            notifications.append(self._notification(event.event_type.value, event))
        notifications.extend(self._notification("alert", alert) for alert in alerts)
        self._notify(notifications)

        if completed % STATUS_REPORT_INTERVAL == 0:
            self._log_status(people_count)

        return result

    def _record_failure(self, error: OccupancyError, generation: int | None) -> None:
        notifications = []
        with self._lock:
            diagnostics = self._diagnostics
            repeated = (
                diagnostics.last_error is not None
                and diagnostics.last_error.code == error.code
                and diagnostics.consecutive_failures > 0
            )
            diagnostics.cycles_failed += 1
            diagnostics.consecutive_failures += 1
            diagnostics.failures_by_code[error.code] += 1
            diagnostics.last_error = error
            diagnostics.last_error_time = datetime.now()
            consecutive = diagnostics.consecutive_failures

            if self._error_policy.surface_cycle_errors:
                self._error = error.message
                notifications.append(self._notification("error", error))

            threshold = self._error_policy.failure_escalation_threshold
            escalate = (
                threshold is not None
                and generation is not None
                and generation == self._generation
                and self._is_detecting
                and consecutive >= threshold
            )
            if escalate:
                self._stop_locked()
                escalation_message = (
                    f"{consecutive} consecutive detection failures: {error.message}"
                )
                self._error = escalation_message
                self._set_state(TrackerState.ERROR)
                notifications.append(self._notification("error", escalation_message))

        if escalate:
            logger.error(f"[{self.camera_id}] {escalation_message}")
        elif repeated:
            logger.debug(f"Cycle failed ({error.code}, x{consecutive}): {error.message}")
        else:
            logger.warning(f"Cycle failed ({error.code}): {error.message}")

        self._notify(notifications)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _notification(self, kind: str, data: Any) -> TrackerNotification:
        return TrackerNotification(
            type=kind, camera_id=self.camera_id, room_id=self.room_id, data=data
        )

    def _notify(self, notifications: list[TrackerNotification]) -> None:
        if not notifications:
            return
        with self._lock:
            subscribers = list(self._subscribers)
        for notification in notifications:
            for callback in subscribers:
                try:
                    callback(notification)
                except Exception as e:
                    logger.error(f"Subscriber failed on {notification.type}: {e}", exc_info=True)

    def _set_state(self, state: TrackerState) -> None:
        if state != self._state:
            logger.info(f"[{self.camera_id}] State: {self._state.value} -> {state.value}")
            self._state = state

    def _log_status(self, people_count: int) -> None:
        d = self.diagnostics
        logger.info(
            f"[{self.camera_id}] Cycles {d.cycles_completed} | People: {people_count} | "
            f"Failed: {d.cycles_failed} | Dropped ticks: {d.ticks_dropped}"
        )
