"""TaskStore: aiosqlite CRUD for tasks, always scoped by owning user."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from focusflow import db as database
from focusflow.config import settings
from focusflow.errors import NotFoundError
from focusflow.tasks.models import COLUMNS, MS_PER_MINUTE, Task, make_task_id

if TYPE_CHECKING:
    from pathlib import Path

    import aiosqlite

    from focusflow.tasks.models import TaskFields

logger = logging.getLogger(__name__)

_SELECT = f"SELECT {', '.join(COLUMNS)} FROM tasks"


class TaskStore:
    """Persists tasks in SQLite.

    Singleton accessed via ``TaskStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: TaskStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path

    @classmethod
    def get(cls) -> TaskStore:
        """Return the shared TaskStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> aiosqlite.Connection:
        return await database.connect(self._db_path)

    # -- Owner-scoped CRUD -----------------------------------------------------

    async def list_tasks(self, user_id: str) -> list[Task]:
        """All of a user's tasks, by start time then newest id first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"{_SELECT} WHERE user_id = ? ORDER BY start_time ASC, id DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def get_task(self, user_id: str, task_id: str) -> Task | None:
        """Fetch a task by ID, or None if absent or owned by someone else."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"{_SELECT} WHERE id = ? AND user_id = ?", (task_id, user_id)
            )
            row = await cursor.fetchone()
            return Task.from_row(row) if row else None
        finally:
            await db.close()

    async def create_task(self, user_id: str, fields: TaskFields) -> Task:
        """Insert a new task owned by *user_id*."""
        task = Task(
            id=make_task_id(),
            user_id=user_id,
            title=fields.title or "",
            priority=fields.priority,
            completed=bool(fields.completed),
            all_day=bool(fields.all_day),
            start_time=fields.start_time,
            end_time=fields.end_time,
            location=fields.location,
            latitude=fields.latitude,
            longitude=fields.longitude,
            reminder_offset_minutes=fields.reminder_offset_minutes,
        )
        db = await self._connect()
        try:
            placeholders = ", ".join("?" for _ in COLUMNS)
            await db.execute(
                f"INSERT INTO tasks ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                task.to_row(),
            )
            await db.commit()
        finally:
            await db.close()
        logger.info("Created task %s for user %s", task.id, user_id)
        return task

    async def update_task(self, user_id: str, task_id: str, fields: TaskFields) -> Task:
        """Overwrite the fields present in *fields*. Raises NotFoundError."""
        changes = fields.changes()
        changes["updated_at"] = datetime.now(UTC).isoformat()
        assignments = ", ".join(f"{column} = ?" for column in changes)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ? AND user_id = ?",
                (*changes.values(), task_id, user_id),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError
            cursor = await db.execute(
                f"{_SELECT} WHERE id = ? AND user_id = ?", (task_id, user_id)
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None:
            # Deleted between the update and the read-back.
            raise NotFoundError
        return Task.from_row(row)

    async def delete_task(self, user_id: str, task_id: str) -> None:
        """Delete a task. Raises NotFoundError."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise NotFoundError
        finally:
            await db.close()
        logger.info("Deleted task %s for user %s", task_id, user_id)

    async def count_tasks(self, user_id: str) -> int:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM tasks WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
        finally:
            await db.close()

    # -- Reminder scheduler support ---------------------------------------------

    async def list_reminder_candidates(self, now_ms: int) -> list[Task]:
        """Unsent, incomplete future tasks whose reminder time has arrived.

        The caller applies the lower bound of the due window.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                {_SELECT}
                WHERE reminder_offset_minutes IS NOT NULL
                  AND start_time > ?
                  AND completed = 0
                  AND reminder_sent = 0
                  AND start_time - reminder_offset_minutes * {MS_PER_MINUTE} <= ?
                ORDER BY start_time ASC
                """,
                (now_ms, now_ms),
            )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_unsent_reminders(self, now_ms: int) -> list[Task]:
        """Unsent, incomplete tasks whose start time is still ahead."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"""
                {_SELECT}
                WHERE reminder_offset_minutes IS NOT NULL
                  AND start_time > ?
                  AND completed = 0
                  AND reminder_sent = 0
                """,
                (now_ms,),
            )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def mark_reminder_sent(
        self,
        user_id: str,
        task_id: str,
        start_time: int,
        reminder_offset_minutes: int,
    ) -> bool:
        """Flip ``reminder_sent`` if it is still unset for this exact schedule.

        A single conditional UPDATE: it only matches while the flag is 0 and
        the start time and offset are the ones the reminder was sent for.
        Returns True if this call flipped the flag.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                UPDATE tasks SET reminder_sent = 1
                WHERE id = ? AND user_id = ? AND reminder_sent = 0
                  AND start_time = ? AND reminder_offset_minutes = ?
                """,
                (task_id, user_id, start_time, reminder_offset_minutes),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()
