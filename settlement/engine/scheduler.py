"""APScheduler integration for FastAPI.

Runs the open-trade sweep on a fixed interval.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from settlement.config import settings

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_open_trades"

scheduler = AsyncIOScheduler()


def start_scheduler():
    """Register the sweep job and start the scheduler."""
    from settlement.engine.sweeper import sweep_open_trades

    scheduler.add_job(
        sweep_open_trades,
        trigger=IntervalTrigger(seconds=settings.sweep_interval_seconds),
        id=SWEEP_JOB_ID,
        name="Open trade sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
    )
    scheduler.start()
    logger.info(f"Scheduler started, sweeping every {settings.sweep_interval_seconds}s")


def stop_scheduler():
    """Shut down the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Return current scheduler state for the API."""
    jobs = scheduler.get_jobs()
    return {
        "running": scheduler.running,
        "job_count": len(jobs),
        "jobs": [
            {
                "id": j.id,
                "name": j.name,
                "next_run": str(j.next_run_time) if j.next_run_time else None,
                "trigger": str(j.trigger),
            }
            for j in jobs
        ],
    }
