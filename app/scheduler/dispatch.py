"""
Minute dispatch.

Called once per UTC minute. Reads `bucket:{date}:{HH:MM}` and, for every
member, re-validates the user's schedule record before sending:

  • the record still lists this UTC key in `utcTimes` (bucket may be stale)
  • the key is not yet in `sentUtc` (re-running a minute is a no-op)
  • the record's local `date` is still today in its own timezone

Each user is processed in isolation; one failure never stops the bucket.
Failed sends are not retried — the next occurrence is another bucket.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from app.core.errors import CorruptRecord, DeliveryFailed, ReminderError
from app.db import buckets, records
from app.db.kv import KeyValueStore, get_store
from app.models.reminder import PushSubscription
from app.services.push_service import PushResult, send_push
from app.services.timezones import current_utc_parts, local_date_in_zone, utc_key

logger = logging.getLogger(__name__)

Sender = Callable[[PushSubscription], PushResult]

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"


async def process_user_for_utc_time(
    store: KeyValueStore,
    user_id: str,
    key: str,
    *,
    now: Optional[datetime] = None,
    sender: Sender = send_push,
) -> str:
    """Deliver one occurrence to one user. Returns SENT or SKIPPED; raises on failure."""
    schedule = await records.load_schedule(store, user_id)
    if schedule is None:
        return SKIPPED

    if not schedule.is_pending(key):
        return SKIPPED

    if schedule.date != local_date_in_zone(schedule.timezone, now):
        logger.debug("Schedule for %s is for %s; waiting for refresh", user_id, schedule.date)
        return SKIPPED

    subscription = await records.load_subscription(store, user_id)
    if subscription is None:
        logger.info("No subscription found for user %s", user_id)
        return SKIPPED

    await asyncio.to_thread(sender, subscription)

    # Re-read: an hourly refresh may have replaced the record while sending.
    latest = await records.load_schedule(store, user_id)
    if latest is None or key not in latest.utc_times:
        logger.info("Schedule for %s changed during send of %s; not marking", user_id, key)
        return SENT
    latest.mark_sent(key)
    await records.save_schedule(store, user_id, latest)

    logger.info("Push sent to user %s at %s", user_id, key)
    return SENT


async def process_minute_bucket(
    store: Optional[KeyValueStore] = None,
    *,
    now: Optional[datetime] = None,
    sender: Sender = send_push,
) -> dict:
    """Fire every due reminder for the current UTC minute; returns per-outcome counts."""
    store = store or get_store()
    utc_date, utc_time = current_utc_parts(now)
    key = utc_key(utc_date, utc_time)

    stats = {SENT: 0, SKIPPED: 0, FAILED: 0}

    user_ids = await buckets.members_at(store, utc_date, utc_time)
    if not user_ids:
        return stats

    for user_id in user_ids:
        try:
            outcome = await process_user_for_utc_time(store, user_id, key, now=now, sender=sender)
        except CorruptRecord as exc:
            logger.warning("Skipping %s at %s: %s", user_id, key, exc)
            outcome = SKIPPED
        except DeliveryFailed as exc:
            logger.warning(
                "Push failed for %s at %s: status=%s body=%s%s",
                user_id, key, exc.status_code, exc.body,
                " (subscription gone)" if exc.gone else "",
            )
            outcome = FAILED
        except ReminderError as exc:
            logger.error("Dispatch error for %s at %s: %s", user_id, key, exc)
            outcome = FAILED
        except Exception:
            logger.exception("Unexpected dispatch error for %s at %s", user_id, key)
            outcome = FAILED
        stats[outcome] += 1

    logger.info("Minute dispatch %s done: %s", key, stats)
    return stats
