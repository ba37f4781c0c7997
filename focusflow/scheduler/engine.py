"""ReminderScheduler: APScheduler lifecycle for the reminder poll job."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from focusflow.config import settings
from focusflow.scheduler.missed import count_missed_reminders
from focusflow.tasks.models import now_ms

if TYPE_CHECKING:
    from focusflow.scheduler.executor import ReminderExecutor
    from focusflow.tasks.store import TaskStore

logger = logging.getLogger(__name__)

JOB_ID = "reminder-poll"


class ReminderScheduler:
    """Runs :meth:`ReminderExecutor.run_once` on a fixed interval.

    A single interval job replaces per-task timers: nothing is lost on
    restart because the persisted ``reminder_sent`` flag is the cursor.

    Args:
        store: TaskStore, used for the startup missed-reminder report.
        executor: ReminderExecutor run on every tick.
        timezone: IANA timezone for the scheduler (default from settings).
    """

    def __init__(
        self,
        store: TaskStore,
        executor: ReminderExecutor,
        timezone: str | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._timezone = timezone or settings.default_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Report missed reminders, add the poll job, and start the scheduler."""
        poll_ms = self._executor.poll_ms
        await count_missed_reminders(self._store, now_ms(), poll_ms)
        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=poll_ms / 1000, timezone=self._timezone),
            id=JOB_ID,
            name="Reminder poll",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info("Reminder scheduler started (every %ds)", poll_ms // 1000)

    async def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Reminder scheduler stopped")

    # -- Internal --------------------------------------------------------------

    async def _tick(self) -> None:
        """Callback invoked by APScheduler."""
        try:
            await self._executor.run_once()
        except Exception:
            logger.exception("Reminder poll failed")
