"""Task data model and validated field payloads."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from focusflow.errors import TaskValidationError

MS_PER_MINUTE = 60_000

# Column order shared by every SELECT in the task store and by to_row/from_row.
COLUMNS = (
    "id",
    "user_id",
    "title",
    "priority",
    "completed",
    "all_day",
    "start_time",
    "end_time",
    "location",
    "latitude",
    "longitude",
    "reminder_offset_minutes",
    "reminder_sent",
    "created_at",
    "updated_at",
)

# Columns that cannot hold NULL; an explicit null in a payload leaves them alone.
_NOT_NULL = {"title", "completed", "all_day"}


class Priority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class Task:
    """A task owned by exactly one user.

    Attributes:
        id: Server-assigned identifier (UUID hex).
        user_id: Owning user.
        start_time / end_time: Epoch milliseconds.
        reminder_offset_minutes: Minutes before ``start_time`` to remind.
        reminder_sent: Set once by the reminder scheduler; never cleared.
    """

    id: str
    user_id: str
    title: str = ""
    priority: Priority | None = None
    completed: bool = False
    all_day: bool = False
    start_time: int | None = None
    end_time: int | None = None
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    reminder_offset_minutes: int | None = None
    reminder_sent: bool = False
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = datetime.now(UTC).isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def reminder_time(self) -> int | None:
        """Epoch ms at which the reminder becomes due, or None."""
        if self.start_time is None or self.reminder_offset_minutes is None:
            return None
        return self.start_time - self.reminder_offset_minutes * MS_PER_MINUTE

    # -- Serialization ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase)."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "priority": str(self.priority) if self.priority else None,
            "completed": self.completed,
            "allDay": self.all_day,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "reminderOffsetMinutes": self.reminder_offset_minutes,
            "reminderSent": self.reminder_sent,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_row(self) -> tuple:
        """Serialize to a tuple matching :data:`COLUMNS`."""
        return (
            self.id,
            self.user_id,
            self.title,
            str(self.priority) if self.priority else None,
            int(self.completed),
            int(self.all_day),
            self.start_time,
            self.end_time,
            self.location,
            self.latitude,
            self.longitude,
            self.reminder_offset_minutes,
            int(self.reminder_sent),
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        return cls(
            id=row[0],
            user_id=row[1],
            title=row[2] or "",
            priority=Priority(row[3]) if row[3] else None,
            completed=bool(row[4]),
            all_day=bool(row[5]),
            start_time=row[6],
            end_time=row[7],
            location=row[8],
            latitude=row[9],
            longitude=row[10],
            reminder_offset_minutes=row[11],
            reminder_sent=bool(row[12]),
            created_at=row[13],
            updated_at=row[14],
        )


class TaskFields(BaseModel):
    """Client-writable task fields.

    Accepts camelCase keys as sent by clients.  ``reminderSent`` and any
    other unknown key is dropped: the reminder flag belongs to the scheduler.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str | None = None
    priority: Priority | None = None
    completed: bool | None = None
    all_day: bool | None = Field(default=None, alias="allDay")
    start_time: int | None = Field(default=None, alias="startTime")
    end_time: int | None = Field(default=None, alias="endTime")
    location: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    reminder_offset_minutes: int | None = Field(
        default=None, ge=0, alias="reminderOffsetMinutes"
    )

    @classmethod
    def parse(cls, payload: Any) -> TaskFields:
        """Validate a raw payload, raising :class:`TaskValidationError`."""
        if not isinstance(payload, dict):
            msg = "Task payload must be an object"
            raise TaskValidationError(msg)
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise TaskValidationError.from_pydantic(exc) from exc

    def changes(self) -> dict[str, Any]:
        """Column → value for every field present in the payload."""
        out: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name in _NOT_NULL:
                continue
            if isinstance(value, Priority):
                value = str(value)
            elif isinstance(value, bool):
                value = int(value)
            out[name] = value
        return out


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)
