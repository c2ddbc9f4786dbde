"""
Pydantic models for reminder settings, push subscriptions and schedule records.

Persisted JSON keeps the camelCase field names the web client sends
(`remindersPerDay`, `utcTimes`, …); Python code uses snake_case attributes.
"""
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.config import settings as app_settings

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_hhmm(value: str) -> str:
    if not HHMM_RE.match(value):
        raise ValueError(f"expected HH:MM (24h), got {value!r}")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ──────────────────────────────────────────────
# Settings (owned by the user)
# ──────────────────────────────────────────────

class ReminderSettings(_CamelModel):
    enabled: bool = False
    reminders_per_day: int = Field(
        default=3,
        alias="remindersPerDay",
        ge=app_settings.MIN_REMINDERS_PER_DAY,
        le=app_settings.MAX_REMINDERS_PER_DAY,
    )
    start_time: str = Field(default="09:00", alias="startTime")
    end_time: str = Field(default="21:00", alias="endTime")
    timezone: str = "UTC"

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_time(cls, v: str) -> str:
        return _check_hhmm(v)


# ──────────────────────────────────────────────
# Push subscription (as produced by PushManager.subscribe())
# ──────────────────────────────────────────────

class SubscriptionKeys(BaseModel):
    p256dh: str = ""
    auth: str = ""


class PushSubscription(_CamelModel):
    endpoint: str
    expiration_time: Optional[float] = Field(default=None, alias="expirationTime")
    keys: SubscriptionKeys = Field(default_factory=SubscriptionKeys)

    @field_validator("endpoint")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("endpoint must be an absolute http(s) URL")
        return v


# ──────────────────────────────────────────────
# Schedule record (owned by the scheduler)
# ──────────────────────────────────────────────

class ScheduleRecord(_CamelModel):
    date: str                                   # local calendar date, YYYY-MM-DD
    timezone: str
    reminders_per_day: Optional[int] = Field(default=None, alias="remindersPerDay")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    times: list[str] = Field(default_factory=list)                      # local HH:MM
    utc_times: list[str] = Field(default_factory=list, alias="utcTimes")  # "YYYY-MM-DDTHH:MM"
    sent_utc: list[str] = Field(default_factory=list, alias="sentUtc")

    @model_validator(mode="after")
    def _consistent(self) -> "ScheduleRecord":
        if len(self.times) != len(self.utc_times):
            raise ValueError("times and utcTimes differ in length")
        if self.reminders_per_day is not None and self.reminders_per_day != len(self.times):
            raise ValueError("remindersPerDay does not match number of times")
        # sentUtc must stay a subset of utcTimes
        self.sent_utc = [k for k in self.sent_utc if k in self.utc_times]
        return self

    def is_pending(self, utc_key: str) -> bool:
        return utc_key in self.utc_times and utc_key not in self.sent_utc

    def mark_sent(self, utc_key: str) -> None:
        if utc_key not in self.sent_utc:
            self.sent_utc.append(utc_key)


# ──────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────

class SubscribeRequest(_CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    subscription: PushSubscription


class SaveSettingsRequest(_CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    settings: ReminderSettings


class UserRequest(_CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
