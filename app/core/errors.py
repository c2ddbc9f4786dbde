"""
Exception hierarchy for the reminder subsystem.

    ReminderError
      ├── InvalidWindow     bad start/end range (HTTP 400)
      ├── InvalidTimezone   unknown IANA zone name (HTTP 400)
      ├── SigningError      VAPID key import or signing failed
      ├── DeliveryFailed    push endpoint answered non-2xx / unreachable
      └── CorruptRecord     persisted JSON could not be decoded
"""
from typing import Optional


class ReminderError(Exception):
    """Base class for all reminder errors."""


class InvalidWindow(ReminderError):
    def __init__(self, start_time: str, end_time: str, reason: str = "End time must be after start time"):
        self.start_time = start_time
        self.end_time = end_time
        super().__init__(f"{reason} (start={start_time!r}, end={end_time!r})")


class InvalidTimezone(ReminderError):
    def __init__(self, zone: str):
        self.zone = zone
        super().__init__(f"Unknown timezone: {zone!r}")


class SigningError(ReminderError):
    pass


class DeliveryFailed(ReminderError):
    def __init__(self, endpoint: str, status_code: Optional[int] = None, body: str = ""):
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        super().__init__(f"Push failed: {status_code} {body}".rstrip())

    @property
    def gone(self) -> bool:
        """True when the push service reports the subscription as expired."""
        return self.status_code in (404, 410)


class CorruptRecord(ReminderError):
    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupt record at {key!r}: {reason}")
