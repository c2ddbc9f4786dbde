# Random reminder times inside a user's daily local window.
import random
from typing import Optional

from app.core.errors import InvalidWindow


def to_minutes(hhmm: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hour, minute = hhmm.split(":")
    return int(hour) * 60 + int(minute)


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def window_minutes(start_time: str, end_time: str) -> int:
    """Width of the half-open window [start, end) in minutes; raises InvalidWindow if empty."""
    try:
        start = to_minutes(start_time)
        end = to_minutes(end_time)
    except (AttributeError, ValueError):
        raise InvalidWindow(start_time, end_time, "Times must be HH:MM")
    if end <= start:
        raise InvalidWindow(start_time, end_time)
    return end - start


def generate_random_times(
    n: int,
    start_time: str,
    end_time: str,
    date: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> list[str]:
    """
    Draw `n` independent uniform times in [start_time, end_time), sorted.

    Duplicates are allowed: each slot is drawn independently. `date` is the
    local day the times belong to and does not affect the draw.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    width = window_minutes(start_time, end_time)
    start = to_minutes(start_time)
    rng = rng or random

    times = [format_minutes(start + rng.randrange(width)) for _ in range(n)]
    return sorted(times)
