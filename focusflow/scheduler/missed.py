"""Missed reminder detection on startup.

Reminders whose due window closed while the process was down are not
replayed.  They are counted and logged so an operator can see the gap.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from focusflow.tasks.store import TaskStore

logger = logging.getLogger(__name__)


async def count_missed_reminders(store: TaskStore, now_ms: int, poll_ms: int) -> int:
    """Return how many unsent reminders fell due before the current window."""
    tasks = await store.list_unsent_reminders(now_ms)
    missed = [
        t for t in tasks
        if t.reminder_time is not None and t.reminder_time <= now_ms - poll_ms
    ]
    for task in missed:
        logger.info(
            "Missed reminder for task %s (user %s), not replayed", task.id, task.user_id
        )
    if missed:
        logger.warning("Found %d missed reminder(s)", len(missed))
    return len(missed)
