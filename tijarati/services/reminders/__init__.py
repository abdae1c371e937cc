"""Debt reminder scheduling."""

from tijarati.services.reminders.scheduler import (
    InvalidScheduleError,
    LoggingNotificationSink,
    NotificationSink,
    ReminderScheduler,
    ScheduleError,
    ScheduledReminder,
    parse_timestamp,
)

__all__ = [
    "InvalidScheduleError",
    "LoggingNotificationSink",
    "NotificationSink",
    "ReminderScheduler",
    "ScheduleError",
    "ScheduledReminder",
    "parse_timestamp",
]
