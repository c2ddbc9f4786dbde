"""
Minute-bucket index: UTC (date, HH:MM) → user ids due at that minute.

Stored as `bucket:{utcDate}:{utcTime}` → JSON list of user ids, written
with a 48h expiry. Dispatch reads one bucket per minute instead of scanning
every schedule. A bucket payload that is not a JSON list is logged and
treated as empty.
"""
import json
import logging
from typing import Iterable, Optional

from app.core.config import settings
from app.db.kv import KeyValueStore
from app.db.records import bucket_key
from app.services.timezones import split_utc_key

logger = logging.getLogger(__name__)


async def _read(store: KeyValueStore, key: str) -> Optional[list[str]]:
    """Current members, [] for a corrupt payload, None when absent."""
    raw = await store.get(key)
    if raw is None:
        return None
    try:
        members = json.loads(raw)
    except ValueError as exc:
        logger.warning("Invalid bucket payload %s: %s", key, exc)
        return []
    if not isinstance(members, list):
        logger.warning("Invalid bucket payload %s: expected list, got %s", key, type(members).__name__)
        return []
    return [m for m in members if isinstance(m, str)]


async def members_at(store: KeyValueStore, utc_date: str, utc_time: str) -> list[str]:
    """User ids in the bucket, in insertion order; [] when absent."""
    return await _read(store, bucket_key(utc_date, utc_time)) or []


async def add_user(store: KeyValueStore, user_id: str, utc_date: str, utc_time: str) -> None:
    key = bucket_key(utc_date, utc_time)
    members = await _read(store, key) or []
    if user_id in members:
        return
    members.append(user_id)
    await store.put(key, json.dumps(members), ttl_seconds=settings.BUCKET_TTL_SECONDS)


async def remove_user(store: KeyValueStore, user_id: str, utc_date: str, utc_time: str) -> None:
    key = bucket_key(utc_date, utc_time)
    members = await _read(store, key)
    if members is None:
        return
    remaining = [m for m in members if m != user_id]
    if not remaining:
        await store.delete(key)
    elif len(remaining) != len(members):
        await store.put(key, json.dumps(remaining), ttl_seconds=settings.BUCKET_TTL_SECONDS)


async def add_user_to_buckets(store: KeyValueStore, user_id: str, utc_keys: Iterable[str]) -> None:
    for key in utc_keys:
        parts = split_utc_key(key)
        if parts is None:
            logger.warning("Skipping malformed UTC key %r for user %s", key, user_id)
            continue
        await add_user(store, user_id, *parts)


async def remove_user_from_buckets(store: KeyValueStore, user_id: str, utc_keys: Iterable[str]) -> None:
    for key in utc_keys:
        parts = split_utc_key(key)
        if parts is None:
            continue
        await remove_user(store, user_id, *parts)
