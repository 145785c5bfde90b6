"""
Background scheduler for the lifecycle sweep.

Uses APScheduler's AsyncIOScheduler so jobs run on the application's event
loop. The sweep runs once at startup and then on a fixed interval.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from carpool.app.core.config import settings
from carpool.app.jobs.lifecycle import run_lifecycle_sweep

logger = logging.getLogger(__name__)

LIFECYCLE_JOB_ID = "trip_lifecycle_sweep"


class SchedulerManager:
    """
    Manager for APScheduler with lifecycle management.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine missed runs
                'max_instances': 1,  # Only one sweep at a time
                'misfire_grace_time': 300,
            }
        )
        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

    def _on_job_executed(self, event):
        logger.debug(f"Job {event.job_id} executed (result: {event.retval})")

    def _on_job_error(self, event):
        logger.error(
            f"Job {event.job_id} raised {event.exception.__class__.__name__}: {event.exception}",
            exc_info=event.exception
        )

    def add_lifecycle_sweep(self, interval_minutes: Optional[int] = None) -> None:
        """Register the sweep; first run fires immediately."""
        minutes = interval_minutes or settings.lifecycle_sweep_interval_minutes
        self.scheduler.add_job(
            run_lifecycle_sweep,
            trigger=IntervalTrigger(minutes=minutes),
            id=LIFECYCLE_JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(),
        )
        logger.info(f"Added interval job: {LIFECYCLE_JOB_ID} (every {minutes} min)")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown")


_manager: Optional[SchedulerManager] = None


def get_scheduler() -> SchedulerManager:
    """Get or create the singleton scheduler manager."""
    global _manager
    if _manager is None:
        _manager = SchedulerManager()
    return _manager
