"""
Hourly schedule refresh.

Walks every `schedule:` key (page by page, following the store's cursor)
and rolls over records whose local date is no longer "today" in their own
timezone. Settings for the rebuild come from the record itself when it is
fully populated, otherwise from `user:{id}:settings`. Users with reminders
disabled, or whose settings cannot be recovered, lose the record and its
bucket memberships.

Also migrates the legacy `schedule:{date}:{userId}` keys.
TODO: drop `_migrate_legacy` once a full refresh pass logs migrated == 0.
"""
import logging
from datetime import datetime
from typing import Optional

from app.core.config import settings
from app.core.errors import CorruptRecord, ReminderError
from app.db import buckets, records
from app.db.kv import KeyValueStore, get_store
from app.db.records import ScheduleKey, ScheduleKeyVersion, parse_schedule_key
from app.models.reminder import ReminderSettings, ScheduleRecord
from app.scheduler.schedule_builder import build_schedule_for_user, settings_from_schedule
from app.services.timezones import local_date_in_zone

logger = logging.getLogger(__name__)

CURRENT = "current"
REBUILT = "rebuilt"
REMOVED = "removed"
MIGRATED = "migrated"
SKIPPED = "skipped"
FAILED = "failed"


async def _stored_settings(store: KeyValueStore, user_id: str) -> Optional[ReminderSettings]:
    try:
        return await records.load_settings(store, user_id)
    except CorruptRecord as exc:
        logger.warning("Invalid settings payload for user %s: %s", user_id, exc)
        return None


async def _migrate_legacy(store: KeyValueStore, parsed: ScheduleKey, key: str, now: Optional[datetime]) -> str:
    user_id = parsed.user_id
    user_settings = await _stored_settings(store, user_id)

    if user_settings is None:
        raw = await store.get(key)
        if raw is not None:
            try:
                user_settings = settings_from_schedule(records.decode(key, raw, ScheduleRecord))
            except CorruptRecord:
                user_settings = None

    if user_settings is not None and user_settings.enabled:
        try:
            existing = await records.load_schedule(store, user_id)
        except CorruptRecord:
            existing = None
        if existing is None:
            await build_schedule_for_user(store, user_id, user_settings, now=now)

    await store.delete(key)
    logger.info("Migrated legacy schedule key %s", key)
    return MIGRATED


async def _refresh_current(store: KeyValueStore, user_id: str, now: Optional[datetime]) -> str:
    try:
        record = await records.load_schedule(store, user_id)
    except CorruptRecord as exc:
        logger.warning("Invalid schedule payload for user %s: %s", user_id, exc)
        user_settings = await _stored_settings(store, user_id)
        if user_settings is None or not user_settings.enabled:
            await records.delete_schedule(store, user_id)
            return REMOVED
        await build_schedule_for_user(store, user_id, user_settings, now=now)
        return REBUILT

    if record is None:
        return SKIPPED

    if record.date == local_date_in_zone(record.timezone, now):
        return CURRENT

    user_settings = settings_from_schedule(record) or await _stored_settings(store, user_id)
    if user_settings is None or not user_settings.enabled:
        await buckets.remove_user_from_buckets(store, user_id, record.utc_times)
        await records.delete_schedule(store, user_id)
        logger.info("Removed stale schedule for user %s (reminders off or settings missing)", user_id)
        return REMOVED

    await build_schedule_for_user(store, user_id, user_settings, previous=record, now=now)
    return REBUILT


async def refresh_key(store: KeyValueStore, key: str, *, now: Optional[datetime] = None) -> str:
    parsed = parse_schedule_key(key)
    if parsed is None:
        return SKIPPED
    if parsed.version is ScheduleKeyVersion.LEGACY:
        return await _migrate_legacy(store, parsed, key, now)
    return await _refresh_current(store, parsed.user_id, now)


async def refresh_schedules(
    store: Optional[KeyValueStore] = None,
    *,
    now: Optional[datetime] = None,
    page_size: int = settings.REFRESH_PAGE_SIZE,
) -> dict:
    """Roll every stale schedule over to today; returns per-outcome counts."""
    store = store or get_store()
    stats = {CURRENT: 0, REBUILT: 0, REMOVED: 0, MIGRATED: 0, SKIPPED: 0, FAILED: 0}

    cursor: Optional[str] = None
    while True:
        page = await store.list(records.SCHEDULE_PREFIX, cursor=cursor, limit=page_size)

        for key in page.keys:
            try:
                outcome = await refresh_key(store, key, now=now)
            except ReminderError as exc:
                logger.error("Refresh failed for %s: %s", key, exc)
                outcome = FAILED
            except Exception:
                logger.exception("Unexpected refresh error for %s", key)
                outcome = FAILED
            stats[outcome] += 1

        if page.complete or not page.cursor:
            break
        cursor = page.cursor

    logger.info("Schedule refresh done: %s", stats)
    return stats
