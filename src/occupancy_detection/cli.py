"""
Occupancy Detection CLI
Main entry point for running a tracker against one camera.

Modes:
  --validate  Check configuration validity
  --once      Run a single detection cycle and print the result
  (default)   Run recurring detection until stopped
"""

import argparse
import json
import logging
import signal
import sys
import time
from collections import deque
from pathlib import Path
from threading import Event as ThreadEvent

from .config import (
    Config,
    config_summary,
    load_config,
    load_config_file,
    load_config_with_env,
    print_validation_result,
    validate_config_full,
)
from .core import AppState, OccupancyTracker, TrackerNotification, TrackerState
from .detectors import build_detector

logger = logging.getLogger(__name__)

# Module-level shutdown signal for SIGTERM/SIGINT handling
_shutdown_signal = ThreadEvent()

# App-state changes requested by SIGUSR1/SIGUSR2, applied by the main loop
_pending_app_states: deque[AppState] = deque()

STATUS_LOG_INTERVAL_S = 60


def _handle_shutdown_signal(signum, _frame):
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    signal_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
    # Note: print is safer than logger in signal handlers
    print(f"\nReceived {signal_name}, initiating graceful shutdown...")
    _shutdown_signal.set()


def _handle_app_state_signal(signum, _frame):
    """SIGUSR1 suspends detection like a backgrounded host, SIGUSR2 resumes."""
    if signum == signal.SIGUSR1:
        _pending_app_states.append(AppState.BACKGROUND)
    else:
        _pending_app_states.append(AppState.ACTIVE)


def _setup_signal_handlers():
    """Register signal handlers for shutdown and suspend/resume."""
    signal.signal(signal.SIGTERM, _handle_shutdown_signal)
    signal.signal(signal.SIGINT, _handle_shutdown_signal)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, _handle_app_state_signal)
        signal.signal(signal.SIGUSR2, _handle_app_state_signal)


def setup_logging(quiet: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        quiet: If True, only show warnings and errors
    """
    level = logging.WARNING if quiet else logging.INFO

    # Custom formatter with shorter module names
    class ShortNameFormatter(logging.Formatter):
        def format(self, record):
            record.name = record.name.replace("occupancy_detection.", "od.")
            return super().format(record)

    handler = logging.StreamHandler()
    handler.setFormatter(
        ShortNameFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S"
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(level)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Occupancy Detection - Count people in a room from a network camera",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m occupancy_detection                    # Run until Ctrl+C
  python -m occupancy_detection --duration 1       # Run for 1 hour
  python -m occupancy_detection --once             # One cycle, print result JSON
  python -m occupancy_detection --validate         # Check config validity

Signals:
  SIGUSR1 - Suspend detection (as if the host went to background)
  SIGUSR2 - Resume detection

Environment Variables:
  OCCUPANCY_CAMERA_HOST, OCCUPANCY_CAMERA_USER, OCCUPANCY_CAMERA_PASSWORD,
  OCCUPANCY_SNAPSHOT_URL, OCCUPANCY_MODEL_FILE - Override config values
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )

    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Quiet mode - only show warnings and errors",
    )

    parser.add_argument(
        "--duration",
        type=float,
        metavar="HOURS",
        help="Stop after this many hours (default: run until stopped)",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single detection cycle and print the result as JSON",
    )

    return parser.parse_args(argv)


def run_validate(config_path: str) -> int:
    """Run validation mode. Returns the process exit code."""
    try:
        raw = load_config_with_env(load_config_file(config_path))
    except FileNotFoundError:
        print(f"Config file not found: {config_path}")
        return 1
    except ValueError as e:
        print(f"Invalid config file: {e}")
        return 1

    result = validate_config_full(raw)
    print_validation_result(result)
    if result.valid:
        for key, value in config_summary(result.config).items():
            print(f"  {key}: {value}")
    return 0 if result.valid else 1


def build_tracker(config: Config) -> OccupancyTracker:
    """Create the detector and tracker described by the config."""
    detector = build_detector(config.detector.model_file, config.detector.device)
    return OccupancyTracker.from_config(config, detector)


def print_banner(config: Config, duration_hours: float | None) -> None:
    """Print system startup banner."""
    print("\n" + "=" * 70)
    print("OCCUPANCY DETECTION")
    print("=" * 70)
    summary = config_summary(config)
    print(f"\nCamera: {summary['camera']} (room {summary['room']}, {summary['source']})")
    print(f"Model: {summary['model']}")
    print(f"Interval: {summary['interval_ms']}ms  Threshold: {summary['threshold']}")
    if duration_hours:
        print(f"Duration: {duration_hours} hour(s)")
    print("Press Ctrl+C to stop")
    print("=" * 70)
    print()


def _log_notification(notification: TrackerNotification) -> None:
    if notification.type in ("entered", "exited"):
        event = notification.data
        logger.info(
            f"[{notification.room_id}] {notification.type.upper()}: "
            f"{event.previous_count} -> {event.current_count}"
        )
    elif notification.type == "alert":
        logger.warning(f"[{notification.room_id}] ALERT: {notification.data.message}")


def run_once(tracker: OccupancyTracker) -> int:
    """Single-shot mode: one cycle, result JSON on stdout."""
    result = tracker.process_frame()
    if result is None:
        diagnostics = tracker.diagnostics
        error = diagnostics.last_error
        print(f"Detection failed: {error.code + ': ' + error.message if error else 'unknown'}")
        return 1
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def run_loop(tracker: OccupancyTracker, duration_hours: float | None) -> str:
    """
    Run recurring detection until a signal or the duration elapses.

    Returns:
        Reason for stopping ('duration', 'signal', 'error', 'interrupted')
    """
    if not tracker.start_detection():
        return "error"

    deadline = time.monotonic() + duration_hours * 3600 if duration_hours else None
    last_status = time.monotonic()

    try:
        while not _shutdown_signal.wait(1.0):
            while _pending_app_states:
                tracker.handle_app_state(_pending_app_states.popleft())

            if tracker.state == TrackerState.ERROR:
                return "error"

            now = time.monotonic()
            if deadline is not None and now >= deadline:
                return "duration"

            if now - last_status >= STATUS_LOG_INTERVAL_S:
                last_status = now
                d = tracker.diagnostics
                logger.info(
                    f"Status: {tracker.state.value} | People: {tracker.people_count} | "
                    f"Cycles: {d.cycles_completed} ok / {d.cycles_failed} failed"
                )
        return "signal"
    except KeyboardInterrupt:
        return "interrupted"


def main(argv: list[str] | None = None) -> None:
    """Main orchestrator function."""
    args = parse_args(argv)
    setup_logging(quiet=args.quiet or args.validate or args.once)

    if args.validate:
        sys.exit(run_validate(args.config))

    if args.duration is not None and args.duration <= 0:
        logger.error(f"Invalid duration '{args.duration}' - must be positive")
        sys.exit(1)

    if not Path(args.config).exists():
        logger.error(f"Config file not found: {args.config}")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    tracker = build_tracker(config)
    try:
        if not tracker.initialize():
            logger.error(tracker.error or "Initialization failed")
            sys.exit(1)

        if args.once:
            sys.exit(run_once(tracker))

        print_banner(config, args.duration)
        _setup_signal_handlers()
        tracker.subscribe(_log_notification)

        reason = run_loop(tracker, args.duration)
        logger.info(f"Stopping ({reason})")
        stats = tracker.stats
        print(f"\n{'=' * 70}")
        print(
            f"Detections: {stats.total_detections} | Average: {stats.average_count:.2f} | "
            f"Peak: {stats.max_count}"
        )
        print("=" * 70)
        if reason == "error":
            sys.exit(1)
    finally:
        tracker.close(dispose_detector=True)


if __name__ == "__main__":
    main()
