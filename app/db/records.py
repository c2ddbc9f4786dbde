"""
Key layout and typed load/save helpers for persisted reminder records.

Every loader is a parse-or-fail boundary: malformed JSON or a payload that
does not fit the model raises CorruptRecord, absence returns None.
"""
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.errors import CorruptRecord
from app.db.kv import KeyValueStore
from app.models.reminder import PushSubscription, ReminderSettings, ScheduleRecord

SCHEDULE_PREFIX = "schedule:"
BUCKET_PREFIX = "bucket:"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")

M = TypeVar("M", bound=BaseModel)


# ─────────────────────────────────────────────────────────────────────────────
# Keys
# ─────────────────────────────────────────────────────────────────────────────

def subscription_key(user_id: str) -> str:
    return f"user:{user_id}:subscription"


def settings_key(user_id: str) -> str:
    return f"user:{user_id}:settings"


def schedule_key(user_id: str) -> str:
    return f"{SCHEDULE_PREFIX}{user_id}"


def legacy_schedule_key(date: str, user_id: str) -> str:
    return f"{SCHEDULE_PREFIX}{date}:{user_id}"


def bucket_key(utc_date: str, utc_time: str) -> str:
    return f"{BUCKET_PREFIX}{utc_date}:{utc_time}"


class ScheduleKeyVersion(str, Enum):
    CURRENT = "current"   # schedule:{userId}
    LEGACY = "legacy"     # schedule:{date}:{userId}


@dataclass(frozen=True)
class ScheduleKey:
    version: ScheduleKeyVersion
    user_id: str
    date: Optional[str] = None


def parse_schedule_key(key: str) -> Optional[ScheduleKey]:
    """Decode a `schedule:` key into its version; None for anything unrecognised.

    User ids may contain colons: only a date-shaped first segment marks a legacy key.
    """
    if not key.startswith(SCHEDULE_PREFIX):
        return None
    rest = key[len(SCHEDULE_PREFIX):]
    if not rest:
        return None
    head, sep, tail = rest.partition(":")
    if sep and _DATE_RE.fullmatch(head):
        if not tail:
            return None
        return ScheduleKey(ScheduleKeyVersion.LEGACY, user_id=tail, date=head)
    return ScheduleKey(ScheduleKeyVersion.CURRENT, user_id=rest)


# ─────────────────────────────────────────────────────────────────────────────
# Codec
# ─────────────────────────────────────────────────────────────────────────────

def decode(key: str, raw: str, model: Type[M]) -> M:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CorruptRecord(key, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CorruptRecord(key, f"expected object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise CorruptRecord(key, str(exc)) from exc


async def _load(store: KeyValueStore, key: str, model: Type[M]) -> Optional[M]:
    raw = await store.get(key)
    if raw is None:
        return None
    return decode(key, raw, model)


# ─────────────────────────────────────────────────────────────────────────────
# Loaders / savers
# ─────────────────────────────────────────────────────────────────────────────

async def load_schedule(store: KeyValueStore, user_id: str) -> Optional[ScheduleRecord]:
    return await _load(store, schedule_key(user_id), ScheduleRecord)


async def save_schedule(store: KeyValueStore, user_id: str, record: ScheduleRecord) -> None:
    await store.put(schedule_key(user_id), record.to_json())


async def delete_schedule(store: KeyValueStore, user_id: str) -> None:
    await store.delete(schedule_key(user_id))


async def load_settings(store: KeyValueStore, user_id: str) -> Optional[ReminderSettings]:
    return await _load(store, settings_key(user_id), ReminderSettings)


async def save_settings(store: KeyValueStore, user_id: str, settings: ReminderSettings) -> None:
    await store.put(settings_key(user_id), settings.to_json())


async def load_subscription(store: KeyValueStore, user_id: str) -> Optional[PushSubscription]:
    return await _load(store, subscription_key(user_id), PushSubscription)


async def save_subscription(store: KeyValueStore, user_id: str, subscription: PushSubscription) -> None:
    await store.put(subscription_key(user_id), subscription.to_json())
