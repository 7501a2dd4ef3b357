from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict

from models.processing_result import BatchResult

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatisticsService:
    """Very small JSON-backed stats store."""

    def __init__(self, stats_file: Path, clock: Callable[[], datetime] = _utcnow):
        self._stats_file = stats_file
        self._clock = clock
        self._stats_file.parent.mkdir(parents=True, exist_ok=True)
        self._stats_file.touch(exist_ok=True)
        if not self._stats_file.read_text(encoding="utf-8").strip():
            self._stats_file.write_text(json.dumps({}), encoding="utf-8")

    def _read(self) -> Dict:
        try:
            return json.loads(self._stats_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Stats file was corrupt, resetting %s", self._stats_file)
            self._stats_file.write_text(json.dumps({}), encoding="utf-8")
            return {}

    def _write(self, payload: Dict) -> None:
        self._stats_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record_batch(self, result: BatchResult) -> None:
        stats = self._read()
        now = self._clock()
        stats["runs"] = stats.get("runs", 0) + 1
        stats["emails_seen"] = stats.get("emails_seen", 0) + result.total
        stats["total_processed"] = stats.get("total_processed", 0) + result.processed
        stats["total_skipped"] = stats.get("total_skipped", 0) + result.skipped
        stats["total_failed"] = stats.get("total_failed", 0) + result.failed
        stats["last_run"] = now.isoformat()
        stats["last_result"] = result.as_dict()
        by_day = stats.setdefault("runs_by_day", {})
        day = now.date().isoformat()
        by_day[day] = by_day.get(day, 0) + 1
        self._write(stats)

    def record_scheduler_state(self, running: bool, interval_minutes: int) -> None:
        stats = self._read()
        stats["scheduler"] = {
            "running": running,
            "interval_minutes": interval_minutes,
            "updated_at": self._clock().isoformat(),
        }
        self._write(stats)

    def runs_today(self) -> int:
        day = self._clock().date().isoformat()
        return self._read().get("runs_by_day", {}).get(day, 0)

    def snapshot(self) -> Dict:
        return self._read()
