import random
from datetime import datetime, timezone

import pytest

from app.core.errors import InvalidTimezone, InvalidWindow
from app.db import buckets, records
from app.models.reminder import ReminderSettings, ScheduleRecord
from app.scheduler.schedule_builder import (
    apply_settings,
    build_schedule_for_user,
    clear_schedule_for_user,
    settings_from_schedule,
)
from app.services.timezones import split_utc_key, to_utc, utc_key

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _settings(**overrides) -> ReminderSettings:
    values = dict(enabled=True, reminders_per_day=5, start_time="09:00", end_time="21:00", timezone="America/New_York")
    values.update(overrides)
    return ReminderSettings(**values)


async def _bucket_members(store, key):
    return await buckets.members_at(store, *split_utc_key(key))


class TestBuildSchedule:
    async def test_record_shape(self, store):
        record = await build_schedule_for_user(store, "u1", _settings(), now=NOW, rng=random.Random(1))

        assert record.date == "2025-06-01"
        assert record.timezone == "America/New_York"
        assert record.reminders_per_day == len(record.times) == len(record.utc_times) == 5
        assert record.times == sorted(record.times)
        assert record.sent_utc == []
        for local, key in zip(record.times, record.utc_times):
            assert key == utc_key(*to_utc("2025-06-01", local, "America/New_York"))
        assert await records.load_schedule(store, "u1") == record

    async def test_every_utc_time_has_bucket_membership(self, store):
        record = await build_schedule_for_user(store, "u1", _settings(), now=NOW, rng=random.Random(2))
        for key in record.utc_times:
            assert "u1" in await _bucket_members(store, key)

    async def test_rebuild_moves_bucket_memberships(self, store):
        old = await build_schedule_for_user(store, "u1", _settings(), now=NOW, rng=random.Random(3))
        new = await build_schedule_for_user(
            store, "u1", _settings(start_time="22:00", end_time="23:00"), previous=old, now=NOW, rng=random.Random(4)
        )

        for key in set(old.utc_times) - set(new.utc_times):
            assert "u1" not in await _bucket_members(store, key)
        for key in new.utc_times:
            assert "u1" in await _bucket_members(store, key)

    async def test_local_date_follows_user_zone(self, store):
        early = datetime(2025, 6, 1, 2, 0, tzinfo=timezone.utc)
        record = await build_schedule_for_user(store, "u1", _settings(), now=early)
        assert record.date == "2025-05-31"

    async def test_bad_window_writes_nothing(self, store):
        with pytest.raises(InvalidWindow):
            await build_schedule_for_user(store, "u1", _settings(start_time="21:00", end_time="09:00"), now=NOW)
        assert await store.get("schedule:u1") is None


class TestClearAndApply:
    async def test_clear_removes_record_and_buckets(self, store):
        record = await build_schedule_for_user(store, "u1", _settings(), now=NOW)
        await clear_schedule_for_user(store, "u1")

        assert await store.get("schedule:u1") is None
        for key in record.utc_times:
            assert "u1" not in await _bucket_members(store, key)

    async def test_clear_tolerates_corrupt_record(self, store):
        await store.put("schedule:u1", "{oops")
        await clear_schedule_for_user(store, "u1")
        assert await store.get("schedule:u1") is None

    async def test_apply_enabled_replaces_schedule(self, store):
        first = await apply_settings(store, "u1", _settings(), now=NOW)
        second = await apply_settings(store, "u1", _settings(reminders_per_day=2, start_time="06:00", end_time="07:00"), now=NOW)

        assert len(second.times) == 2
        assert (await records.load_settings(store, "u1")).reminders_per_day == 2
        for key in set(first.utc_times) - set(second.utc_times):
            assert "u1" not in await _bucket_members(store, key)

    async def test_apply_disabled_deletes_schedule(self, store):
        record = await apply_settings(store, "u1", _settings(), now=NOW)
        assert await apply_settings(store, "u1", _settings(enabled=False), now=NOW) is None

        assert await store.get("schedule:u1") is None
        assert (await records.load_settings(store, "u1")).enabled is False
        for key in record.utc_times:
            assert await _bucket_members(store, key) == []

    async def test_apply_rejects_bad_window_before_writing(self, store):
        await apply_settings(store, "u1", _settings(), now=NOW)
        with pytest.raises(InvalidWindow):
            await apply_settings(store, "u1", _settings(start_time="10:00", end_time="10:00"), now=NOW)
        assert (await records.load_settings(store, "u1")).start_time == "09:00"
        assert await records.load_schedule(store, "u1") is not None

    async def test_apply_rejects_unknown_zone(self, store):
        with pytest.raises(InvalidTimezone):
            await apply_settings(store, "u1", _settings(timezone="Nowhere/Land"), now=NOW)
        assert await store.get("user:u1:settings") is None


class TestSettingsFromSchedule:
    def test_complete_record(self):
        record = ScheduleRecord(
            date="2025-06-01", timezone="Europe/Paris", reminders_per_day=1,
            start_time="08:00", end_time="09:00", times=["08:10"], utc_times=["2025-06-01T06:10"],
        )
        assert settings_from_schedule(record) == ReminderSettings(
            enabled=True, reminders_per_day=1, start_time="08:00", end_time="09:00", timezone="Europe/Paris"
        )

    def test_partial_record(self):
        record = ScheduleRecord(date="2025-06-01", timezone="UTC", times=[], utc_times=[])
        assert settings_from_schedule(record) is None
        assert settings_from_schedule(None) is None
