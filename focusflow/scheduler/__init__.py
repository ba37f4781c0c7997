"""Reminder scheduling: windowed polling, execution, and missed-run reporting."""

from focusflow.scheduler.engine import ReminderScheduler
from focusflow.scheduler.executor import ReminderExecutor, is_due
from focusflow.scheduler.missed import count_missed_reminders

__all__ = [
    "ReminderExecutor",
    "ReminderScheduler",
    "count_missed_reminders",
    "is_due",
]
