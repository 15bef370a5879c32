"""
Background Job Scheduler

APScheduler (AsyncIO) wrapper owning the periodic jobs of the API process.

- Jobs are registered with their trigger before the scheduler starts
- Every job runs with max_instances=1 and coalescing, so missed runs collapse
  into one and a job never overlaps itself
- Failed runs are logged by the event listener and never stop the scheduler
- Any registered job can be triggered manually from the admin endpoints

Usage:
    register_job("password_expiration_check", checker.run_scheduled_check,
                 IntervalTrigger(hours=6))
    await start_scheduler()
    ...
    await stop_scheduler()
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]

_scheduler: AsyncIOScheduler | None = None


@dataclass
class RegisteredJob:
    """A job known to the process, scheduled or not."""

    job_id: str
    func: JobFunc
    trigger: BaseTrigger


_job_registry: dict[str, RegisteredJob] = {}


class SchedulerConfig:
    """Configuration for the background scheduler."""

    TIMEZONE = "UTC"

    JOB_DEFAULTS = {
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 60 * 5,
    }


class JobNotFoundError(LookupError):
    """Raised when a job id is not in the registry."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(
            f"Job {job_id} not found in registry. Available jobs: {list(_job_registry.keys())}"
        )


def _job_listener(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(
            f"Job {event.job_id} failed with exception: {event.exception}",
            exc_info=event.exception,
        )
    else:
        logger.info(f"Job {event.job_id} finished with result: {event.retval}")


def get_scheduler() -> AsyncIOScheduler | None:
    """Return the running scheduler, or None if it was never started."""
    return _scheduler


def register_job(
    job_id: str,
    func: JobFunc,
    trigger: BaseTrigger,
    replace_existing: bool = True,
) -> None:
    """
    Register a job and, if the scheduler is already running, schedule it.

    Args:
        job_id: Unique identifier for the job
        func: Async callable to execute
        trigger: APScheduler trigger (IntervalTrigger, CronTrigger, ...)
        replace_existing: Whether to replace a scheduled job with the same ID
    """
    _job_registry[job_id] = RegisteredJob(job_id=job_id, func=func, trigger=trigger)

    if _scheduler is None:
        logger.debug(f"Scheduler not started, job {job_id} will be scheduled on start")
        return

    _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=replace_existing)
    logger.info(f"Registered job: {job_id}")


def unregister_job(job_id: str) -> None:
    """Forget a job and remove it from the scheduler if scheduled."""
    _job_registry.pop(job_id, None)
    if _scheduler is not None and _scheduler.get_job(job_id) is not None:
        _scheduler.remove_job(job_id)


def _schedule_registered_jobs(scheduler: AsyncIOScheduler) -> None:
    for job in _job_registry.values():
        scheduler.add_job(job.func, trigger=job.trigger, id=job.job_id, replace_existing=True)
    logger.info(f"Scheduled {len(_job_registry)} registered job(s)")


async def start_scheduler() -> AsyncIOScheduler:
    """
    Create and start the scheduler with every registered job.

    Returns:
        The running scheduler instance
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running, returning existing instance")
        return _scheduler

    _scheduler = AsyncIOScheduler(
        timezone=SchedulerConfig.TIMEZONE,
        job_defaults=SchedulerConfig.JOB_DEFAULTS,
    )
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    _schedule_registered_jobs(_scheduler)
    _scheduler.start()

    logger.info("Background job scheduler started")
    return _scheduler


async def stop_scheduler() -> None:
    """
    Stop the scheduler.

    Running jobs are not awaited here; long jobs observe their own
    cancellation signal and stop between work items.
    """
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        logger.debug("Scheduler not running, nothing to stop")
        _scheduler = None
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("Background job scheduler stopped")


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job immediately, outside its schedule.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at,
        and either the job's result or the error message

    Raises:
        JobNotFoundError: If job_id is not registered
    """
    job = _job_registry.get(job_id)
    if job is None:
        raise JobNotFoundError(job_id)

    executed_at = datetime.now(UTC)
    logger.info(f"Manually triggering job: {job_id}")

    try:
        result = await job.func()
    except Exception as e:
        logger.error(f"Manual execution of job {job_id} failed: {e}", exc_info=True)
        return {
            "job_id": job_id,
            "status": "error",
            "executed_at": executed_at.isoformat(),
            "error": str(e),
        }

    return {
        "job_id": job_id,
        "status": "success",
        "executed_at": executed_at.isoformat(),
        "result": result,
    }


def list_registered_jobs() -> list[dict[str, Any]]:
    """List registered jobs with their next run time and pause state."""
    jobs = []
    for job_id, job in _job_registry.items():
        info: dict[str, Any] = {
            "job_id": job_id,
            "trigger": str(job.trigger),
            "next_run_time": None,
            "is_paused": True,
        }
        if _scheduler is not None:
            scheduled = _scheduler.get_job(job_id)
            if scheduled is not None and scheduled.next_run_time is not None:
                info["next_run_time"] = scheduled.next_run_time.isoformat()
                info["is_paused"] = False
        jobs.append(info)
    return jobs


def pause_job(job_id: str) -> bool:
    """Pause a scheduled job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot pause job {job_id}: not scheduled")
        return False
    _scheduler.pause_job(job_id)
    logger.info(f"Paused job: {job_id}")
    return True


def resume_job(job_id: str) -> bool:
    """Resume a paused job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot resume job {job_id}: not scheduled")
        return False
    _scheduler.resume_job(job_id)
    logger.info(f"Resumed job: {job_id}")
    return True
