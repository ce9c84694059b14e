import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Runs dashboard refreshes off the caller's thread.

    ``submit`` queues an immediate one-off run; repeated submits for the same
    job id while one is pending replace it, so a burst of ledger changes
    collapses into a single refresh. ``watch`` adds the period roll-over and
    safety-net runs for a dashboard.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None) -> None:
        settings = get_settings()
        self.scheduler = scheduler or BackgroundScheduler(timezone=settings.timezone)
        self.safety_minutes = settings.safety_refresh_minutes

    def submit(self, job_id: str, fn: Callable[[], object]) -> None:
        # the previous run may still be returning when the next one is due
        self.scheduler.add_job(
            fn,
            id=f"{job_id}:now",
            replace_existing=True,
            coalesce=True,
            max_instances=2,
            misfire_grace_time=None,
        )
        logger.debug(f"refresh_submitted: job={job_id}")

    def watch(self, job_id: str, fn: Callable[[], object]) -> None:
        # first of the month at midnight is a boundary for every granularity
        self.scheduler.add_job(
            fn,
            CronTrigger(day=1, hour=0, minute=0),
            id=f"{job_id}:rollover",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=3600,
        )
        self.scheduler.add_job(
            fn,
            IntervalTrigger(minutes=self.safety_minutes),
            id=f"{job_id}:safety",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=300,
        )
        logger.info(
            f"refresh_watch: job={job_id} rollover=monthly safety_minutes={self.safety_minutes}"
        )

    def unwatch(self, job_id: str) -> None:
        for suffix in ("now", "rollover", "safety"):
            job = self.scheduler.get_job(f"{job_id}:{suffix}")
            if job is not None:
                job.remove()
        logger.info(f"refresh_unwatch: job={job_id}")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Refresh scheduler started")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Refresh scheduler stopped")
