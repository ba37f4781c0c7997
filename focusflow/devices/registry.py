"""DeviceRegistry: push endpoints and preferences per user, in SQLite."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from focusflow import db as database
from focusflow.config import settings
from focusflow.devices.models import DeviceRegistration, UserPreferences

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    import aiosqlite

    from focusflow.devices.models import PreferenceFields

logger = logging.getLogger(__name__)

_USER_COLUMNS = (
    "user_id, notification_enabled, reminder_enabled, quiet_hours_start,"
    " quiet_hours_end, timezone, last_sync_time"
)


class DeviceRegistry:
    """Per-user device tokens keyed by token, and secondarily by device id.

    Singleton accessed via ``DeviceRegistry.get()``.  Pass an explicit
    *db_path* for test isolation.
    """

    _instance: DeviceRegistry | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path

    @classmethod
    def get(cls) -> DeviceRegistry:
        """Return the shared DeviceRegistry instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> aiosqlite.Connection:
        return await database.connect(self._db_path)

    @staticmethod
    async def _ensure_user(db: aiosqlite.Connection, user_id: str, now: str) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO users (user_id, created_at, updated_at) VALUES (?, ?, ?)",
            (user_id, now, now),
        )

    # -- Devices ---------------------------------------------------------------

    async def register(
        self, user_id: str, token: str, device_id: str | None = None
    ) -> DeviceRegistration:
        """Create or refresh a registration.

        A record matching either *token* or *device_id* for this user is
        updated in place.  If the token and the device id currently belong to
        two different records, they collapse into the device-id record.
        """
        now = datetime.now(UTC).isoformat()
        db = await self._connect()
        try:
            await db.execute("BEGIN IMMEDIATE")
            await self._ensure_user(db, user_id, now)
            cursor = await db.execute(
                """
                SELECT id, token, device_id FROM devices
                WHERE user_id = ?
                  AND (token = ? OR (device_id IS NOT NULL AND device_id = ?))
                """,
                (user_id, token, device_id),
            )
            matches = await cursor.fetchall()
            if not matches:
                await db.execute(
                    "INSERT INTO devices (user_id, token, device_id, updated_at) VALUES (?, ?, ?, ?)",
                    (user_id, token, device_id, now),
                )
                logger.info("Registered new device for user %s", user_id)
            else:
                keeper = next(
                    (row for row in matches if device_id and row[2] == device_id),
                    matches[0],
                )
                for row in matches:
                    if row[0] != keeper[0]:
                        await db.execute("DELETE FROM devices WHERE id = ?", (row[0],))
                await db.execute(
                    """
                    UPDATE devices
                    SET token = ?, device_id = COALESCE(?, device_id), updated_at = ?
                    WHERE id = ?
                    """,
                    (token, device_id, now, keeper[0]),
                )
                device_id = device_id or keeper[2]
                logger.info("Refreshed device registration for user %s", user_id)
            await db.commit()
        finally:
            await db.close()
        return DeviceRegistration(
            user_id=user_id, token=token, device_id=device_id, updated_at=now
        )

    async def list_devices(self, user_id: str) -> list[DeviceRegistration]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT user_id, token, device_id, updated_at FROM devices
                WHERE user_id = ? ORDER BY updated_at, id
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [
                DeviceRegistration(
                    user_id=row[0], token=row[1], device_id=row[2], updated_at=row[3]
                )
                for row in rows
            ]
        finally:
            await db.close()

    async def remove_tokens(self, user_id: str, tokens: Iterable[str]) -> int:
        """Delete registrations by exact token match. Returns rows removed."""
        tokens = list(dict.fromkeys(tokens))
        if not tokens:
            return 0
        placeholders = ", ".join("?" for _ in tokens)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"DELETE FROM devices WHERE user_id = ? AND token IN ({placeholders})",
                (user_id, *tokens),
            )
            await db.commit()
            return cursor.rowcount
        finally:
            await db.close()

    async def unregister(self, user_id: str, token: str) -> bool:
        return await self.remove_tokens(user_id, [token]) > 0

    # -- Preferences -----------------------------------------------------------

    async def get_preferences(self, user_id: str) -> UserPreferences | None:
        """Return the user's preferences, or None if no user record exists."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            return UserPreferences.from_row(row) if row else None
        finally:
            await db.close()

    async def update_preferences(
        self, user_id: str, fields: PreferenceFields
    ) -> UserPreferences:
        """Apply the fields present in *fields*, creating the user if needed."""
        now = datetime.now(UTC).isoformat()
        changes = fields.changes()
        changes["updated_at"] = now
        assignments = ", ".join(f"{column} = ?" for column in changes)
        db = await self._connect()
        try:
            await self._ensure_user(db, user_id, now)
            await db.execute(
                f"UPDATE users SET {assignments} WHERE user_id = ?",
                (*changes.values(), user_id),
            )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        return UserPreferences.from_row(row)

    async def set_last_sync(self, user_id: str, when_ms: int) -> None:
        now = datetime.now(UTC).isoformat()
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO users (user_id, last_sync_time, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE
                SET last_sync_time = excluded.last_sync_time,
                    updated_at = excluded.updated_at
                """,
                (user_id, when_ms, now, now),
            )
            await db.commit()
        finally:
            await db.close()
