"""
APScheduler-based reconciliation scheduler.

This module provides the ReconciliationScheduler class for scheduling
periodic compare-all runs using interval or cron triggers.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


def parse_cron_expression(cron_expression: str) -> CronTrigger:
    """
    Build a CronTrigger from a 5-part expression (minute hour day month day_of_week).

    Raises:
        ValueError: If the expression does not have 5 parts or a part is invalid
    """
    parts = cron_expression.split()

    if len(parts) != 5:
        raise ValueError(
            "Cron expression must have 5 parts: minute hour day month day_of_week"
        )

    minute, hour, day, month, day_of_week = parts

    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week
    )


class ReconciliationScheduler:
    """
    Scheduler for automated reconciliation runs

    Jobs never overlap with themselves: a run still in progress when the
    next fire time arrives makes APScheduler skip that fire time.
    """

    def __init__(self, scheduler: BlockingScheduler | None = None):
        self.scheduler = scheduler or BlockingScheduler()
        self.jobs = []

    def _add_job(self, job_func: Callable, trigger: Any, job_id: str, kwargs: dict) -> None:
        job = self.scheduler.add_job(
            job_func,
            trigger=trigger,
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.jobs = [existing for existing in self.jobs if existing.id != job_id]
        self.jobs.append(job)

    def add_interval_job(
        self,
        job_func: Callable,
        interval_seconds: int,
        job_id: str,
        **kwargs
    ) -> None:
        """
        Add a job that runs at fixed intervals

        Args:
            job_func: Function to execute
            interval_seconds: Interval in seconds
            job_id: Unique identifier for the job
            **kwargs: Additional arguments to pass to job_func
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._add_job(job_func, IntervalTrigger(seconds=interval_seconds), job_id, kwargs)
        logger.info(
            f"Added interval job '{job_id}' with {interval_seconds}s interval"
        )

    def add_cron_job(
        self,
        job_func: Callable,
        cron_expression: str,
        job_id: str,
        **kwargs
    ) -> None:
        """
        Add a job that runs on a cron schedule

        Example cron expressions:
            "0 */6 * * *"  - Every 6 hours
            "0 0 * * *"    - Daily at midnight
            "*/30 * * * *" - Every 30 minutes
        """
        self._add_job(job_func, parse_cron_expression(cron_expression), job_id, kwargs)
        logger.info(f"Added cron job '{job_id}' with schedule '{cron_expression}'")

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.jobs = [job for job in self.jobs if job.id != job_id]
        logger.info(f"Removed job '{job_id}'")

    def start(self) -> None:
        """
        Start the scheduler

        Blocks the current thread and runs scheduled jobs until interrupted.
        """
        logger.info(f"Starting reconciliation scheduler with {len(self.jobs)} job(s)")

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def list_jobs(self) -> list[dict[str, Any]]:
        """
        List all scheduled jobs

        Returns:
            List of job information dictionaries
        """
        job_list = []

        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, "next_run_time", None)
            job_list.append({
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger)
            })

        return job_list
