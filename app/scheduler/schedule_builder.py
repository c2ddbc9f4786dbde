"""
Schedule (re)building.

A user's schedule and their bucket memberships are always changed
together: old buckets are emptied of the user before the new record and
its buckets are installed, so a rebuild never leaves a stale minute
behind that could fire twice.
"""
import logging
import random
from datetime import datetime
from typing import Optional

from app.core.errors import CorruptRecord
from app.db import buckets, records
from app.db.kv import KeyValueStore
from app.models.reminder import ReminderSettings, ScheduleRecord
from app.services.time_window import generate_random_times, window_minutes
from app.services.timezones import local_date_in_zone, to_utc, utc_key

logger = logging.getLogger(__name__)


def settings_from_schedule(record: Optional[ScheduleRecord]) -> Optional[ReminderSettings]:
    """Settings embedded in a schedule record, or None if any field is missing."""
    if record is None:
        return None
    if not (record.reminders_per_day and record.start_time and record.end_time and record.timezone):
        return None
    return ReminderSettings(
        enabled=True,
        reminders_per_day=record.reminders_per_day,
        start_time=record.start_time,
        end_time=record.end_time,
        timezone=record.timezone,
    )


async def build_schedule_for_user(
    store: KeyValueStore,
    user_id: str,
    reminder_settings: ReminderSettings,
    previous: Optional[ScheduleRecord] = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> ScheduleRecord:
    """
    Generate today's random times (in the user's zone), persist the record
    with an empty `sentUtc`, and move the user's bucket memberships from
    `previous.utc_times` to the new UTC keys.

    Raises InvalidWindow / InvalidTimezone before touching storage.
    """
    tz_name = reminder_settings.timezone
    date = local_date_in_zone(tz_name, now)
    times = generate_random_times(
        reminder_settings.reminders_per_day,
        reminder_settings.start_time,
        reminder_settings.end_time,
        date,
        rng=rng,
    )
    utc_times = [utc_key(*to_utc(date, t, tz_name)) for t in times]

    if previous is not None:
        await buckets.remove_user_from_buckets(store, user_id, previous.utc_times)

    record = ScheduleRecord(
        date=date,
        timezone=tz_name,
        reminders_per_day=reminder_settings.reminders_per_day,
        start_time=reminder_settings.start_time,
        end_time=reminder_settings.end_time,
        times=times,
        utc_times=utc_times,
        sent_utc=[],
    )
    await records.save_schedule(store, user_id, record)
    await buckets.add_user_to_buckets(store, user_id, utc_times)

    logger.info("Generated schedule for user %s on %s: %s", user_id, date, times)
    return record


async def clear_schedule_for_user(store: KeyValueStore, user_id: str) -> None:
    """Drop the user's current record and every bucket membership it named."""
    try:
        current = await records.load_schedule(store, user_id)
    except CorruptRecord as exc:
        logger.warning("Discarding unreadable schedule for user %s: %s", user_id, exc)
        current = None

    if current is not None:
        await buckets.remove_user_from_buckets(store, user_id, current.utc_times)
    await records.delete_schedule(store, user_id)


async def apply_settings(
    store: KeyValueStore,
    user_id: str,
    reminder_settings: ReminderSettings,
    *,
    now: Optional[datetime] = None,
) -> Optional[ScheduleRecord]:
    """
    Persist new settings wholesale and bring the schedule in line with them.
    Returns the fresh record, or None when reminders are disabled.
    """
    if reminder_settings.enabled:
        # Validate window and zone before anything is written.
        local_date_in_zone(reminder_settings.timezone, now)
        window_minutes(reminder_settings.start_time, reminder_settings.end_time)

    await records.save_settings(store, user_id, reminder_settings)
    await clear_schedule_for_user(store, user_id)

    if not reminder_settings.enabled:
        logger.info("Reminders disabled for user %s; schedule removed", user_id)
        return None

    return await build_schedule_for_user(store, user_id, reminder_settings, now=now)
