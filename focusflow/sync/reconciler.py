"""SyncReconciler: applies a batch of offline client mutations, item by item."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from focusflow.errors import NotFoundError, TaskValidationError
from focusflow.tasks.models import TaskFields, now_ms

if TYPE_CHECKING:
    from focusflow.devices.registry import DeviceRegistry
    from focusflow.tasks.store import TaskStore

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"

# Keys a client may use for the server id it believes the task has.
_SERVER_ID_KEYS = ("id", "_id", "remoteId")
_RESERVED_KEYS = {"localId", "userId", *_SERVER_ID_KEYS}


@dataclass
class SyncResult:
    synced: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"synced": self.synced, "errors": self.errors}


def _split_item(item: dict[str, Any]) -> tuple[Any, str | None, dict[str, Any]]:
    """Separate the client correlation id, the server id and the field payload."""
    server_id = next((item[key] for key in _SERVER_ID_KEYS if item.get(key)), None)
    payload = {k: v for k, v in item.items() if k not in _RESERVED_KEYS}
    return item.get("localId"), str(server_id) if server_id is not None else None, payload


class SyncReconciler:
    """Merges client-authored task mutations into the store (last write wins).

    Args:
        store: TaskStore receiving the creates and updates.
        registry: DeviceRegistry, where the user's ``lastSyncTime`` lives.
    """

    def __init__(self, store: TaskStore, registry: DeviceRegistry) -> None:
        self._store = store
        self._registry = registry

    async def reconcile(self, user_id: str, items: Any) -> SyncResult:
        """Apply *items* for *user_id*; one bad item never blocks the rest.

        Raises TaskValidationError only when *items* is not a list.
        """
        if not isinstance(items, list):
            msg = "items must be an array"
            raise TaskValidationError(msg)

        result = SyncResult()
        for item in items:
            await self._apply(user_id, item, result)

        await self._registry.set_last_sync(user_id, now_ms())
        logger.info(
            "Sync for user %s: %d synced, %d error(s)",
            user_id,
            len(result.synced),
            len(result.errors),
        )
        return result

    async def _apply(self, user_id: str, item: Any, result: SyncResult) -> None:
        if not isinstance(item, dict):
            result.errors.append({"localId": None, "error": "Item must be an object"})
            return
        local_id, server_id, payload = _split_item(item)
        if local_id is None and server_id is None:
            result.errors.append({"localId": None, "error": "localId is required"})
            return

        try:
            fields = TaskFields.parse(payload)
            status = CREATED
            task = None
            if server_id:
                try:
                    task = await self._store.update_task(user_id, server_id, fields)
                    status = UPDATED
                except NotFoundError:
                    logger.info(
                        "Sync item %s referenced unknown task %s; creating", local_id, server_id
                    )
            if task is None:
                task = await self._store.create_task(user_id, fields)
        except TaskValidationError as exc:
            result.errors.append({"localId": local_id, "error": exc.reason})
            return
        except Exception:
            logger.exception("Sync item %s failed for user %s", local_id, user_id)
            result.errors.append({"localId": local_id, "error": "Internal error"})
            return

        result.synced.append({"localId": local_id, "remoteId": task.id, "status": status})

    async def status(self, user_id: str) -> dict[str, Any]:
        """Last sync time for *user_id*, with the server clock for comparison."""
        prefs = await self._registry.get_preferences(user_id)
        return {
            "lastSyncTime": prefs.last_sync_time if prefs else None,
            "pendingCount": 0,
            "serverTime": now_ms(),
        }
