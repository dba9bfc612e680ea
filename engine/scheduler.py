"""APScheduler-driven ticker that advances due enrollments.

Each tick loads the active enrollments of active automations whose
``next_step_at`` has passed and processes them one at a time. A tick that
fires while the previous one is still running is skipped, never queued.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from db.models import utcnow
from db.repository import EnrollmentRepository

from .state_machine import AutomationEngine

logger = logging.getLogger(__name__)

TICK_JOB_ID = "automation:process_due_enrollments"


class StepScheduler:
    """Periodic processing of due enrollments.

    Lifecycle:
        scheduler = StepScheduler(engine, enrollments, interval_seconds=60)
        scheduler.start()
        ...
        scheduler.stop()

    ``tick()`` can also be called directly, which is what tests do.
    """

    def __init__(
        self,
        engine: AutomationEngine,
        enrollments: EnrollmentRepository,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
        batch_size: Optional[int] = None,
    ) -> None:
        self._engine = engine
        self._enrollments = enrollments
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._batch_size = batch_size
        self._tick_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=TICK_JOB_ID,
            name=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Step scheduler started, ticking every %s seconds", self._interval_seconds)

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Step scheduler stopped")

    def tick(self, now: Optional[datetime] = None) -> int:
        """Process every enrollment due at ``now``. Returns how many were processed."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous scheduler tick still running, skipping")
            return 0
        try:
            now = now or self._clock()
            due = self._enrollments.list_due(now, limit=self._batch_size)
            if due:
                logger.info("Processing %d due enrollment(s)", len(due))
            processed = 0
            for enrollment in due:
                try:
                    self._engine.process_enrollment_step(enrollment, now=now)
                    processed += 1
                except Exception:
                    # One bad enrollment must not stall the rest of the batch
                    logger.exception("Unhandled error processing enrollment %s", enrollment.id)
            return processed
        finally:
            self._tick_lock.release()
