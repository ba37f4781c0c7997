"""TaskTracker: the operations exposed to the HTTP layer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from focusflow.devices.models import PreferenceFields
from focusflow.errors import NotFoundError, TaskValidationError
from focusflow.tasks.models import TaskFields

if TYPE_CHECKING:
    from focusflow.devices.models import DeviceRegistration, UserPreferences
    from focusflow.devices.registry import DeviceRegistry
    from focusflow.notifications.dispatcher import NotificationDispatcher
    from focusflow.sync.reconciler import SyncReconciler, SyncResult
    from focusflow.tasks.models import Task
    from focusflow.tasks.store import TaskStore

logger = logging.getLogger(__name__)

MANUAL = "manual"
DEFAULT_NOTIFY_TITLE = "Task Reminder"


class TaskTracker:
    """Owner-scoped facade over the stores, the dispatcher and the reconciler.

    Every method takes the verified user id as its first argument.
    """

    def __init__(
        self,
        store: TaskStore,
        registry: DeviceRegistry,
        dispatcher: NotificationDispatcher,
        reconciler: SyncReconciler,
    ) -> None:
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher
        self.reconciler = reconciler

    # -- Tasks -----------------------------------------------------------------

    async def list_tasks(self, user_id: str) -> list[Task]:
        return await self.store.list_tasks(user_id)

    async def create_task(self, user_id: str, payload: Any) -> Task:
        return await self.store.create_task(user_id, TaskFields.parse(payload))

    async def update_task(self, user_id: str, task_id: str, payload: Any) -> Task:
        return await self.store.update_task(user_id, task_id, TaskFields.parse(payload))

    async def delete_task(self, user_id: str, task_id: str) -> None:
        await self.store.delete_task(user_id, task_id)

    # -- Devices and preferences -----------------------------------------------

    async def register_device(
        self, user_id: str, token: Any, device_id: Any = None
    ) -> DeviceRegistration:
        if not isinstance(token, str) or not token.strip():
            msg = "token is required"
            raise TaskValidationError(msg)
        if device_id is not None and not isinstance(device_id, str):
            msg = "deviceId must be a string"
            raise TaskValidationError(msg)
        return await self.registry.register(user_id, token.strip(), device_id or None)

    async def unregister_device(self, user_id: str, token: str) -> None:
        if not await self.registry.unregister(user_id, token):
            raise NotFoundError("Device")

    async def update_preferences(self, user_id: str, payload: Any) -> UserPreferences:
        return await self.registry.update_preferences(user_id, PreferenceFields.parse(payload))

    # -- Notifications ---------------------------------------------------------

    async def notify_now(
        self,
        user_id: str,
        task_id: str,
        title: str | None = None,
        body: str | None = None,
    ) -> dict[str, Any]:
        """Send an immediate notification about one of the user's tasks."""
        task = await self.store.get_task(user_id, task_id)
        if task is None:
            raise NotFoundError
        outcome = await self.dispatcher.deliver(
            user_id,
            title or DEFAULT_NOTIFY_TITLE,
            body or task.title,
            {"taskId": task.id, "action": MANUAL, "type": "task"},
            kind=MANUAL,
        )
        return {
            "sent": outcome.success_count,
            "failed": outcome.failure_count,
            "delivered": outcome.delivered,
            "reason": outcome.reason,
        }

    # -- Sync ------------------------------------------------------------------

    async def reconcile(self, user_id: str, items: Any) -> SyncResult:
        return await self.reconciler.reconcile(user_id, items)

    async def sync_status(self, user_id: str) -> dict[str, Any]:
        return await self.reconciler.status(user_id)
