"""
Periodic triggers for the reminder engine.

  • minute_dispatch — every UTC minute: deliver the current minute bucket
  • hourly_refresh  — top of every hour: roll schedules over to the new local day

APScheduler 3.x (AsyncIOScheduler) runs both jobs in the FastAPI event
loop. `max_instances=1` keeps each job from overlapping itself; the two
jobs may still overlap each other, which dispatch tolerates by
re-validating every schedule record before sending.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.scheduler.dispatch import process_minute_bucket
from app.scheduler.refresh import refresh_schedules

logger = logging.getLogger(__name__)

DISPATCH_JOB_ID = "minute_dispatch"
REFRESH_JOB_ID = "hourly_refresh"


async def run_minute_dispatch() -> dict:
    """Job wrapper: a failing run is logged, never propagated to the scheduler."""
    try:
        return await process_minute_bucket()
    except Exception:
        logger.exception("Minute dispatch run failed")
        return {}


async def run_hourly_refresh() -> dict:
    try:
        return await refresh_schedules()
    except Exception:
        logger.exception("Hourly refresh run failed")
        return {}


def create_scheduler() -> AsyncIOScheduler:
    """
    Create and configure the APScheduler AsyncIOScheduler.
    Call scheduler.start() from the FastAPI lifespan context.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    # Every minute, on the minute: fire the current bucket
    scheduler.add_job(
        run_minute_dispatch,
        trigger="cron",
        minute="*",
        second=0,
        id=DISPATCH_JOB_ID,
        name="Minute bucket dispatch",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=30,
    )

    # Every hour at :00 UTC: roll over schedules whose local day changed
    scheduler.add_job(
        run_hourly_refresh,
        trigger="cron",
        minute=0,
        id=REFRESH_JOB_ID,
        name="Hourly schedule refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )

    return scheduler
