"""Reminder scheduling for reconciled tasks."""

from .engine import (
    CATEGORY_MEETING,
    CATEGORY_TASK,
    NotificationCenter,
    Reminder,
    ReminderScheduler,
)

__all__ = [
    "ReminderScheduler",
    "Reminder",
    "NotificationCenter",
    "CATEGORY_MEETING",
    "CATEGORY_TASK",
]
