"""Device registration and per-user notification preferences."""

from __future__ import annotations

import zoneinfo
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from focusflow.errors import TaskValidationError


@dataclass
class DeviceRegistration:
    """A push endpoint belonging to one user."""

    user_id: str
    token: str
    device_id: str | None = None
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "deviceId": self.device_id,
            "updatedAt": self.updated_at,
        }


@dataclass
class UserPreferences:
    """Delivery preferences for one user.

    Attributes:
        quiet_hours_start / quiet_hours_end: Hour of day (0-23). Both must be
            set for quiet hours to apply; ``start > end`` wraps past midnight.
        timezone: IANA name used to evaluate quiet hours (None → default).
        last_sync_time: Epoch ms of the last completed sync batch.
    """

    user_id: str
    notification_enabled: bool = True
    reminder_enabled: bool = True
    quiet_hours_start: int | None = None
    quiet_hours_end: int | None = None
    timezone: str | None = None
    last_sync_time: int | None = None

    def in_quiet_hours(self, now: datetime) -> bool:
        """True if *now* (already in the user's local time) is inside the window."""
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start is None or end is None or start == end:
            return False
        hour = now.hour
        if start < end:
            return start <= hour < end
        return hour >= start or hour < end

    def local_now(self, default_timezone: str, now: datetime | None = None) -> datetime:
        """Current time (or *now*) converted to the user's timezone."""
        tz = zoneinfo.ZoneInfo(self.timezone or default_timezone)
        if now is None:
            return datetime.now(tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(tz)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notificationEnabled": self.notification_enabled,
            "reminderEnabled": self.reminder_enabled,
            "quietHoursStart": self.quiet_hours_start,
            "quietHoursEnd": self.quiet_hours_end,
            "timezone": self.timezone,
            "lastSyncTime": self.last_sync_time,
        }

    @classmethod
    def from_row(cls, row: tuple) -> UserPreferences:
        return cls(
            user_id=row[0],
            notification_enabled=bool(row[1]),
            reminder_enabled=bool(row[2]),
            quiet_hours_start=row[3],
            quiet_hours_end=row[4],
            timezone=row[5],
            last_sync_time=row[6],
        )


class PreferenceFields(BaseModel):
    """Client-writable preference fields (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notification_enabled: bool | None = Field(default=None, alias="notificationEnabled")
    reminder_enabled: bool | None = Field(default=None, alias="reminderEnabled")
    quiet_hours_start: int | None = Field(default=None, ge=0, le=23, alias="quietHoursStart")
    quiet_hours_end: int | None = Field(default=None, ge=0, le=23, alias="quietHoursEnd")
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {value}"
            raise ValueError(msg) from exc
        return value

    @classmethod
    def parse(cls, payload: Any) -> PreferenceFields:
        if not isinstance(payload, dict):
            msg = "Preferences payload must be an object"
            raise TaskValidationError(msg)
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise TaskValidationError.from_pydantic(exc) from exc

    def changes(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name in {"notification_enabled", "reminder_enabled"}:
                if value is None:
                    continue
                value = int(value)
            out[name] = value
        return out
