from __future__ import annotations

import logging
import time
from typing import Dict, Optional

import schedule

from models.processing_result import BatchResult
from services.email_processor import EmailProcessor
from services.rule_store import RuleStore
from services.statistics_service import StatisticsService
from utils.errors import EmailAutomationError

LOGGER = logging.getLogger(__name__)


class SchedulerService:
    """Runs the processing cycle every ``interval_minutes`` with the schedule library.

    Jobs run on the calling thread inside ``run_pending``, so cycles never
    overlap; the processor's busy guard covers manual runs started elsewhere.
    """

    def __init__(
        self,
        processor: EmailProcessor,
        stats: StatisticsService,
        interval_minutes: int = 5,
        batch_size: int = 10,
        rule_store: Optional[RuleStore] = None,
        reload_rules: bool = False,
    ):
        self._processor = processor
        self._stats = stats
        self.interval_minutes = interval_minutes
        self.batch_size = batch_size
        self._rule_store = rule_store
        self._reload_rules = reload_rules
        self._scheduler = schedule.Scheduler()
        self._job: Optional[schedule.Job] = None

    @property
    def running(self) -> bool:
        return self._job is not None

    def status(self) -> Dict:
        return {"running": self.running, "interval_minutes": self.interval_minutes}

    def start(self, run_immediately: bool = True) -> None:
        if self.running:
            LOGGER.warning("Scheduler already running")
            return
        LOGGER.info("Starting scheduler with interval: %s minute(s)", self.interval_minutes)
        self._job = self._scheduler.every(self.interval_minutes).minutes.do(self.run_cycle)
        self._stats.record_scheduler_state(True, self.interval_minutes)
        if run_immediately:
            LOGGER.info("Running initial email processing")
            self.run_cycle()

    def stop(self) -> None:
        if not self.running:
            return
        LOGGER.info("Stopping scheduler")
        self._scheduler.clear()
        self._job = None
        self._stats.record_scheduler_state(False, self.interval_minutes)
        LOGGER.info("Scheduler stopped")

    def run_pending(self) -> None:
        self._scheduler.run_pending()

    def run_forever(self, poll_seconds: float = 1.0) -> None:
        try:
            while self.running:
                self.run_pending()
                time.sleep(poll_seconds)
        finally:
            self.stop()

    def run_cycle(self) -> Optional[BatchResult]:
        LOGGER.info("--- Email processing cycle started ---")
        result: Optional[BatchResult] = None
        try:
            if self._reload_rules and self._rule_store is not None:
                self._rule_store.reload()
            result = self._processor.process_unread_emails(self.batch_size)
        except EmailAutomationError as exc:
            LOGGER.error("Email processing cycle failed: %s", exc)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Email processing cycle failed unexpectedly")
        else:
            self._stats.record_batch(result)
            LOGGER.info(
                "Email cycle completed - Processed: %s, Skipped: %s, Failed: %s",
                result.processed,
                result.skipped,
                result.failed,
            )
        LOGGER.info("--- Email processing cycle ended ---")
        return result
