"""
Scheduler Module
Fires the ETL pipeline on a cron schedule and on demand.

Only one run executes at a time within a process: a scheduled tick that
finds a run in flight is skipped, and a manual trigger raises
ETLAlreadyRunningError.
"""

import threading
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from kpi_engine.exceptions import ETLAlreadyRunningError
from kpi_engine.utils.logger import LoggerMixin

DEFAULT_SCHEDULE = '0 * * * *'  # hourly
JOB_ID = 'kpi_etl'


class ETLScheduler(LoggerMixin):
    """Cron wrapper around a run callable (usually ETLPipeline.run)."""

    def __init__(
        self,
        run_job: Callable[[], Any],
        schedule: str = DEFAULT_SCHEDULE,
        timezone: str = 'UTC',
        scheduler: Optional[BackgroundScheduler] = None
    ):
        self.run_job = run_job
        self.schedule = schedule
        self.timezone = timezone
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self._job = None
        self._run_lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        """Whether the recurring schedule is active."""
        return self._job is not None

    @property
    def run_in_progress(self) -> bool:
        return self._run_lock.locked()

    def start(self) -> bool:
        """
        Start the recurring trigger.

        Returns:
            True if the schedule is active, False if the expression is invalid
        """
        if self._job is not None:
            self.logger.warning("ETL schedule is already active")
            return True

        try:
            trigger = CronTrigger.from_crontab(self.schedule, timezone=self.timezone)
        except ValueError as e:
            self.logger.error(f"Invalid cron schedule '{self.schedule}': {e}")
            return False

        if not self._scheduler.running:
            self._scheduler.start()

        self._job = self._scheduler.add_job(
            self._scheduled_run,
            trigger,
            id=JOB_ID,
            name='KPI snapshot ETL',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.logger.info(f"ETL schedule started: '{self.schedule}' ({self.timezone})")
        return True

    def stop(self) -> None:
        """
        Stop the recurring trigger. A run already in flight completes.

        The background scheduler keeps running so start() can resume the
        schedule; call shutdown() when the process is going away.
        """
        if self._job is not None:
            self._job.remove()
            self._job = None
            self.logger.info("ETL schedule stopped")

    def shutdown(self) -> None:
        """Stop the trigger and the background scheduler thread."""
        self.stop()

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # A shut-down scheduler cannot submit jobs again
            self._scheduler = BackgroundScheduler(timezone=self.timezone)

    def trigger(self) -> Any:
        """
        Run the ETL now, in the calling thread.

        Returns:
            Whatever run_job returns

        Raises:
            ETLAlreadyRunningError: If a run is already in flight
        """
        if not self._run_lock.acquire(blocking=False):
            raise ETLAlreadyRunningError("An ETL run is already in progress")

        try:
            self.logger.info("Manual ETL run triggered")
            return self.run_job()
        finally:
            self._run_lock.release()

    def _scheduled_run(self) -> None:
        """Scheduled ETL job; failures are logged, never raised to the scheduler."""
        if not self._run_lock.acquire(blocking=False):
            self.logger.warning("Skipping scheduled ETL run: previous run still in progress")
            return

        try:
            self.logger.info("Running scheduled ETL")
            self.run_job()
            self.logger.info("Scheduled ETL completed")
        except Exception as e:
            self.logger.error(f"Scheduled ETL failed: {e}")
        finally:
            self._run_lock.release()

    def next_run_time(self):
        """Estimated next fire time, or None when inactive."""
        if self._job is None:
            return None
        return getattr(self._job, 'next_run_time', None)

    def status(self) -> Dict[str, Any]:
        """Schedule state for health checks and scripts."""
        next_run = self.next_run_time()
        return {
            'running': self.is_active,
            'schedule': self.schedule,
            'timezone': self.timezone,
            'next_execution': next_run.isoformat() if next_run else None,
            'run_in_progress': self.run_in_progress,
        }
