"""Reminder scheduler package."""
from app.scheduler.dispatch import process_minute_bucket
from app.scheduler.refresh import refresh_schedules
from app.scheduler.reminder_scheduler import create_scheduler
from app.scheduler.schedule_builder import apply_settings, build_schedule_for_user

__all__ = [
    "apply_settings",
    "build_schedule_for_user",
    "create_scheduler",
    "process_minute_bucket",
    "refresh_schedules",
]
