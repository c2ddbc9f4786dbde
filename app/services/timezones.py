"""
Timezone helpers: "today" in an IANA zone and local wall-clock → UTC.

`to_utc` estimates the offset twice (at the naive guess, then at the
candidate instant) so that offsets changing near the local point are
picked up. Wall-clock times that fall inside a DST transition are resolved
with the zone's standard-time offset:

  • fall-back overlap (e.g. 01:30 on the first Sunday of November in
    America/New_York) maps to the later, standard-time instant;
  • spring-forward gap (e.g. 02:30 on the second Sunday of March) is
    interpreted with the pre-transition standard offset and therefore
    lands one hour later on the wall clock (03:30 EDT).
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz

from app.core.errors import InvalidTimezone

logger = logging.getLogger(__name__)

DATE_FMT = "%Y-%m-%d"
TIME_FMT = "%H:%M"


def get_zone(zone_name: str) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(zone_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezone(zone_name)


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


def local_date_in_zone(zone_name: str, now: Optional[datetime] = None) -> str:
    """Today's calendar date (YYYY-MM-DD) in `zone_name`."""
    now = now or _utc_now()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(get_zone(zone_name)).strftime(DATE_FMT)


def _offset_at(tz: pytz.BaseTzInfo, instant: datetime) -> timedelta:
    """UTC offset of `tz` at the aware UTC `instant`."""
    return instant.astimezone(tz).utcoffset()


def to_utc(local_date: str, local_time: str, zone_name: str) -> tuple[str, str]:
    """
    Convert a local (date, HH:MM) in `zone_name` to a UTC (date, HH:MM) pair.

    >>> to_utc("2025-06-01", "14:30", "America/New_York")
    ('2025-06-01', '18:30')
    """
    tz = get_zone(zone_name)
    wall = datetime.strptime(f"{local_date} {local_time}", f"{DATE_FMT} {TIME_FMT}")

    estimate = pytz.utc.localize(wall)
    offset = _offset_at(tz, estimate)
    candidate = estimate - offset

    corrected = _offset_at(tz, candidate)
    if corrected != offset:
        candidate = estimate - corrected

    try:
        tz.localize(wall, is_dst=None)
    except (pytz.AmbiguousTimeError, pytz.NonExistentTimeError) as exc:
        candidate = tz.localize(wall, is_dst=False).astimezone(pytz.utc)
        logger.debug(
            "%s %s in %s falls in a DST transition (%s); using standard time → %s",
            local_date, local_time, zone_name, type(exc).__name__, candidate.isoformat(),
        )

    return candidate.strftime(DATE_FMT), candidate.strftime(TIME_FMT)


def utc_key(utc_date: str, utc_time: str) -> str:
    return f"{utc_date}T{utc_time}"


def split_utc_key(key: str) -> Optional[tuple[str, str]]:
    """'YYYY-MM-DDTHH:MM' -> (date, time); None if malformed."""
    date, sep, time = key.partition("T")
    if not sep or not date or not time:
        return None
    return date, time


def current_utc_parts(now: Optional[datetime] = None) -> tuple[str, str]:
    now = now or _utc_now()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    now = now.astimezone(pytz.utc)
    return now.strftime(DATE_FMT), now.strftime(TIME_FMT)
