"""
JSONL Sink
Appends results, events and alerts to daily JSONL files and reads back the
persisted window.
"""

import json
import logging
import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..models import DetectionEvent, DetectionResult

if TYPE_CHECKING:
    from ..core.alerts import OccupancyAlert

logger = logging.getLogger(__name__)

FILE_PREFIX = "occupancy_"


class JsonlSink:
    """
    Durable store for tracker output.

    One file per day (``occupancy_YYYYMMDD.jsonl``); every line carries a
    ``record_type`` of result, event or alert.
    """

    def __init__(self, json_dir: str, write_results: bool = True):
        """
        Args:
            json_dir: Output directory (created if missing)
            write_results: Also persist every DetectionResult, not only events
        """
        self.json_dir = Path(json_dir)
        self.write_results = write_results
        self._lock = threading.Lock()
        os.makedirs(self.json_dir, exist_ok=True)
        logger.info(f"JSONL sink writing to {self.json_dir}")

    def _file_for(self, when: datetime) -> Path:
        return self.json_dir / f"{FILE_PREFIX}{when.strftime('%Y%m%d')}.jsonl"

    def _append(self, record_type: str, payload: dict[str, Any], when: datetime) -> None:
        line = json.dumps({"record_type": record_type, **payload})
        with self._lock:
            with open(self._file_for(when), "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def handle_result(self, result: DetectionResult) -> None:
        if self.write_results:
            self._append("result", result.to_dict(), result.timestamp)

    def handle_event(self, event: DetectionEvent) -> None:
        self._append("event", event.to_dict(), event.timestamp)

    def handle_alert(self, alert: "OccupancyAlert") -> None:
        self._append("alert", alert.to_dict(), alert.timestamp)

    def load_recent(
        self,
        hours: float = 24,
        record_type: str | None = None,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read persisted records from the last ``hours`` hours.

        Args:
            hours: Window length
            record_type: Only return this record type (result/event/alert)
            now: Reference time (defaults to now)

        Returns:
            Records oldest first
        """
        now = now or datetime.now()
        cutoff = now - timedelta(hours=hours)

        # Every calendar day touched by the window
        days = []
        day = cutoff.date()
        while day <= now.date():
            days.append(day)
            day += timedelta(days=1)

        records = []
        for day in days:
            path = self.json_dir / f"{FILE_PREFIX}{day.strftime('%Y%m%d')}.jsonl"
            if not path.exists():
                continue
            with open(path, encoding="utf-8") as f:
                for line_number, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                        timestamp = datetime.fromisoformat(record["timestamp"])
                    except (json.JSONDecodeError, KeyError, ValueError) as e:
                        logger.warning(f"Skipping bad record {path.name}:{line_number}: {e}")
                        continue
                    if timestamp < cutoff:
                        continue
                    if record_type and record.get("record_type") != record_type:
                        continue
                    records.append(record)

        records.sort(key=lambda r: r["timestamp"])
        return records
