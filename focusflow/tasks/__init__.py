"""Task entity: model, validated payloads and owner-scoped persistence."""

from focusflow.tasks.models import Priority, Task, TaskFields
from focusflow.tasks.store import TaskStore

__all__ = [
    "Priority",
    "Task",
    "TaskFields",
    "TaskStore",
]
