"""Scheduler configuration using SQLAlchemy job store."""

import asyncio
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from .config.logging import get_logger
from .config.settings import get_settings

logger = get_logger(__name__)

CATALOG_SYNC_JOB_ID = "catalog_sync"
RULE_EVALUATION_JOB_ID = "rule_evaluation"

_scheduler: Optional[BackgroundScheduler] = None


def create_scheduler(max_workers: int = 3) -> BackgroundScheduler:
    """
    Create and configure a BackgroundScheduler with SQLAlchemy job store.

    Args:
        max_workers: Size of the job thread pool

    Returns:
        Configured BackgroundScheduler instance
    """
    settings = get_settings()

    # Jobs persist in the application database
    jobstores = {
        "default": SQLAlchemyJobStore(
            url=settings.get_database_url(), tablename="apscheduler_jobs"
        )
    }

    executors = {"default": ThreadPoolExecutor(max_workers=max_workers)}

    job_defaults = {
        "coalesce": False,  # Don't combine multiple missed executions
        "max_instances": 1,  # Only one instance of each job at a time
        "misfire_grace_time": 30,
    }

    scheduler = BackgroundScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone="UTC",
    )

    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    return scheduler


def job_executed_listener(event):
    """Log successful job executions."""
    logger.info(
        "Scheduled job executed",
        job_id=event.job_id,
        scheduled_run_time=str(event.scheduled_run_time),
    )


def job_error_listener(event):
    """Log job execution errors."""
    logger.error(
        "Scheduled job crashed",
        job_id=event.job_id,
        error=str(event.exception),
        traceback=event.traceback,
    )


def get_global_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler

    if _scheduler is None:
        _scheduler = create_scheduler()

    return _scheduler


def start_scheduler():
    """Start the global scheduler."""
    scheduler = get_global_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the global scheduler."""
    scheduler = get_global_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


def run_catalog_sync() -> None:
    """Job entry point: one catalog sync on the worker thread."""
    from .services.catalog import CatalogService

    asyncio.run(CatalogService().sync())


def run_rule_evaluation() -> None:
    """Job entry point: one price evaluation cycle on the worker thread."""
    from .services.monitor import PriceEvaluationJob, RuleEvaluationEngine
    from .services.notification import build_default_dispatcher

    job = PriceEvaluationJob(engine=RuleEvaluationEngine(dispatcher=build_default_dispatcher()))
    asyncio.run(job.run())


def _remove_job(scheduler: BackgroundScheduler, job_id: str) -> None:
    try:
        scheduler.remove_job(job_id)
    except JobLookupError:
        pass


def add_catalog_sync_job(interval_minutes: Optional[int] = None):
    """
    Add the catalog sync job to the scheduler.

    Args:
        interval_minutes: How often to sync (defaults to settings)
    """
    interval_minutes = interval_minutes or get_settings().catalog_sync_interval_minutes
    scheduler = get_global_scheduler()
    _remove_job(scheduler, CATALOG_SYNC_JOB_ID)

    scheduler.add_job(
        func="stockwatch.scheduler:run_catalog_sync",
        trigger="interval",
        minutes=interval_minutes,
        id=CATALOG_SYNC_JOB_ID,
        name="Instrument Catalog Sync",
        replace_existing=True,
    )

    logger.info("Added catalog sync job", interval_minutes=interval_minutes)


def add_rule_evaluation_job(interval_seconds: Optional[int] = None):
    """
    Add the rule evaluation job to the scheduler.

    Args:
        interval_seconds: How often to evaluate (defaults to settings)
    """
    interval_seconds = interval_seconds or get_settings().evaluation_interval_seconds
    scheduler = get_global_scheduler()
    _remove_job(scheduler, RULE_EVALUATION_JOB_ID)

    scheduler.add_job(
        func="stockwatch.scheduler:run_rule_evaluation",
        trigger="interval",
        seconds=interval_seconds,
        id=RULE_EVALUATION_JOB_ID,
        name="Monitor Rule Evaluation",
        replace_existing=True,
    )

    logger.info("Added rule evaluation job", interval_seconds=interval_seconds)


def list_scheduled_jobs():
    """Log all currently scheduled jobs."""
    jobs = get_global_scheduler().get_jobs()

    if not jobs:
        logger.info("No scheduled jobs")
        return

    for job in jobs:
        logger.info(
            "Scheduled job",
            job_id=job.id,
            name=job.name,
            next_run_time=str(job.next_run_time),
        )
