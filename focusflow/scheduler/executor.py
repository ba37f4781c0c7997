"""ReminderExecutor: one polling pass over due reminders."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from focusflow.config import settings
from focusflow.notifications.dispatcher import REMINDER
from focusflow.tasks.models import now_ms as current_ms

if TYPE_CHECKING:
    from focusflow.notifications.dispatcher import NotificationDispatcher
    from focusflow.tasks.models import Task
    from focusflow.tasks.store import TaskStore

logger = logging.getLogger(__name__)


def is_due(reminder_time: int, now_ms: int, poll_ms: int) -> bool:
    """True if *reminder_time* fell inside ``(now - poll, now]``."""
    return now_ms - poll_ms < reminder_time <= now_ms


def reminder_body(offset_minutes: int) -> str:
    unit = "minute" if offset_minutes == 1 else "minutes"
    return f"Starts in {offset_minutes} {unit}"


class ReminderExecutor:
    """Finds reminders that became due since the last poll and dispatches them.

    Args:
        store: TaskStore to scan and to record sent reminders in.
        dispatcher: NotificationDispatcher used for delivery.
        poll_ms: Poll interval in milliseconds; also the width of the due window.
    """

    def __init__(
        self,
        store: TaskStore,
        dispatcher: NotificationDispatcher,
        poll_ms: int | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._poll_ms = poll_ms or settings.reminder_poll_ms

    @property
    def poll_ms(self) -> int:
        return self._poll_ms

    async def run_once(self, now_ms: int | None = None) -> int:
        """Run one pass. Returns the number of reminders marked as sent."""
        now = current_ms() if now_ms is None else now_ms
        candidates = await self._store.list_reminder_candidates(now)
        due = [
            t for t in candidates
            if t.reminder_time is not None and is_due(t.reminder_time, now, self._poll_ms)
        ]
        logger.debug("Reminder pass: %d candidate(s), %d due", len(candidates), len(due))

        sent = 0
        for task in due:
            try:
                if await self._remind(task):
                    sent += 1
            except Exception:
                logger.exception("Reminder failed for task %s", task.id)
        if sent:
            logger.info("Sent %d reminder(s)", sent)
        return sent

    async def _remind(self, task: Task) -> bool:
        """Dispatch one reminder and record it. Returns True if recorded."""
        if task.start_time is None or task.reminder_offset_minutes is None:
            logger.warning("Task %s has no reminder schedule; skipping", task.id)
            return False
        outcome = await self._dispatcher.deliver(
            task.user_id,
            f"Reminder: {task.title}",
            reminder_body(task.reminder_offset_minutes),
            {"taskId": task.id, "action": REMINDER, "type": "task"},
            kind=REMINDER,
        )
        if not outcome.delivered:
            logger.info(
                "Reminder for task %s not delivered (%s); will retry while due",
                task.id,
                outcome.reason or f"{outcome.failure_count} failure(s)",
            )
            return False

        marked = await self._store.mark_reminder_sent(
            task.user_id, task.id, task.start_time, task.reminder_offset_minutes
        )
        if not marked:
            logger.warning(
                "Task %s changed or was already marked during dispatch", task.id
            )
        return marked
