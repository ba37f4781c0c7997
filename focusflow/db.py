"""SQLite connection helper and schema for tasks, users and devices.

Every store opens a short-lived ``aiosqlite`` connection per operation via
:func:`connect`.  The schema (tables plus the query indexes used by the task
list and the reminder scan) is created the first time a given database path
is opened in this process.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id                      TEXT PRIMARY KEY,
        user_id                 TEXT NOT NULL,
        title                   TEXT NOT NULL DEFAULT '',
        priority                TEXT,
        completed               INTEGER NOT NULL DEFAULT 0,
        all_day                 INTEGER NOT NULL DEFAULT 0,
        start_time              INTEGER,
        end_time                INTEGER,
        location                TEXT,
        latitude                REAL,
        longitude               REAL,
        reminder_offset_minutes INTEGER,
        reminder_sent           INTEGER NOT NULL DEFAULT 0,
        created_at              TEXT NOT NULL,
        updated_at              TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id              TEXT PRIMARY KEY,
        notification_enabled INTEGER NOT NULL DEFAULT 1,
        reminder_enabled     INTEGER NOT NULL DEFAULT 1,
        quiet_hours_start    INTEGER,
        quiet_hours_end      INTEGER,
        timezone             TEXT,
        last_sync_time       INTEGER,
        created_at           TEXT NOT NULL,
        updated_at           TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS devices (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id    TEXT NOT NULL,
        token      TEXT NOT NULL,
        device_id  TEXT,
        updated_at TEXT NOT NULL,
        UNIQUE (user_id, token)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_start ON tasks (user_id, start_time)",
    """
    CREATE INDEX IF NOT EXISTS idx_tasks_user_reminder
        ON tasks (user_id, reminder_offset_minutes, start_time)
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_devices_user_device
        ON devices (user_id, device_id) WHERE device_id IS NOT NULL
    """,
)

# Columns added after the first release of the tasks table.
_ADDED_TASK_COLUMNS = {
    "latitude": "REAL",
    "longitude": "REAL",
    "reminder_sent": "INTEGER NOT NULL DEFAULT 0",
}

_initialised: set[str] = set()


async def _ensure_schema(db: aiosqlite.Connection) -> None:
    for statement in _SCHEMA:
        await db.execute(statement)
    await db.commit()


async def connect(path: Path) -> aiosqlite.Connection:
    """Open a connection, creating parent dirs and the schema on first use."""
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    key = str(path.resolve())
    if key not in _initialised:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await _ensure_schema(db)
        _initialised.add(key)
    return db


async def migrate(path: Path) -> int:
    """Bring an older database up to the current schema.

    Adds the location and reminder-tracking columns to ``tasks`` when they are
    missing, then creates the remaining tables and indexes.  Returns the
    number of pre-existing task rows that received the new columns.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    try:
        cursor = await db.execute("PRAGMA table_info(tasks)")
        existing = {row[1] for row in await cursor.fetchall()}
        backfilled = 0
        missing = [name for name in _ADDED_TASK_COLUMNS if name not in existing]
        if existing and missing:
            cursor = await db.execute("SELECT COUNT(*) FROM tasks")
            row = await cursor.fetchone()
            backfilled = row[0] if row else 0
            for name in missing:
                await db.execute(
                    f"ALTER TABLE tasks ADD COLUMN {name} {_ADDED_TASK_COLUMNS[name]}"
                )
            logger.info("Added task columns %s to %d row(s)", missing, backfilled)
        await _ensure_schema(db)
        _initialised.add(str(path.resolve()))
        logger.info("Migration complete: %s", path)
        return backfilled
    finally:
        await db.close()
