from unittest.mock import AsyncMock, patch

from apscheduler.triggers.cron import CronTrigger

from app.scheduler.reminder_scheduler import (
    DISPATCH_JOB_ID,
    REFRESH_JOB_ID,
    create_scheduler,
    run_hourly_refresh,
    run_minute_dispatch,
)


def test_two_distinct_cron_jobs():
    scheduler = create_scheduler()
    jobs = {job.id: job for job in scheduler.get_jobs()}

    assert set(jobs) == {DISPATCH_JOB_ID, REFRESH_JOB_ID}
    for job in jobs.values():
        assert isinstance(job.trigger, CronTrigger)
        assert job.max_instances == 1

    dispatch_fields = {f.name: str(f) for f in jobs[DISPATCH_JOB_ID].trigger.fields}
    refresh_fields = {f.name: str(f) for f in jobs[REFRESH_JOB_ID].trigger.fields}
    assert dispatch_fields["minute"] == "*" and dispatch_fields["second"] == "0"
    assert refresh_fields["minute"] == "0" and refresh_fields["hour"] == "*"


async def test_job_wrappers_never_raise():
    with patch(
        "app.scheduler.reminder_scheduler.process_minute_bucket",
        AsyncMock(side_effect=RuntimeError("store down")),
    ):
        assert await run_minute_dispatch() == {}

    with patch(
        "app.scheduler.reminder_scheduler.refresh_schedules",
        AsyncMock(side_effect=RuntimeError("store down")),
    ):
        assert await run_hourly_refresh() == {}
