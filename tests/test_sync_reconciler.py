"""Tests for SyncReconciler: per-item create/update with last write wins."""

import pytest

from focusflow.devices.registry import DeviceRegistry
from focusflow.errors import TaskValidationError
from focusflow.sync.reconciler import SyncReconciler
from focusflow.tasks.models import TaskFields
from focusflow.tasks.store import TaskStore


@pytest.fixture
def reconciler(store: TaskStore, registry: DeviceRegistry) -> SyncReconciler:
    return SyncReconciler(store, registry)


# -- Creates and updates -----------------------------------------------------------


async def test_item_without_id_is_created(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    result = await reconciler.reconcile("u1", [{"localId": "l1", "title": "New task"}])

    assert result.errors == []
    (entry,) = result.synced
    assert entry["localId"] == "l1"
    assert entry["status"] == "created"
    task = await store.get_task("u1", entry["remoteId"])
    assert task is not None
    assert task.title == "New task"


async def test_second_sync_with_remote_id_updates(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    first = await reconciler.reconcile("u1", [{"localId": "l1", "title": "Draft"}])
    remote_id = first.synced[0]["remoteId"]

    second = await reconciler.reconcile(
        "u1", [{"localId": "l1", "id": remote_id, "title": "Final"}]
    )

    assert second.synced == [{"localId": "l1", "remoteId": remote_id, "status": "updated"}]
    tasks = await store.list_tasks("u1")
    assert [(t.id, t.title) for t in tasks] == [(remote_id, "Final")]


@pytest.mark.parametrize("key", ["id", "_id", "remoteId"])
async def test_server_id_keys(reconciler: SyncReconciler, store: TaskStore, key: str) -> None:
    task = await store.create_task("u1", TaskFields.parse({"title": "a"}))
    result = await reconciler.reconcile("u1", [{"localId": "l1", key: task.id, "title": "b"}])
    assert result.synced[0]["status"] == "updated"


async def test_last_write_wins_without_version_check(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    task = await store.create_task("u1", TaskFields.parse({"title": "server edit"}))
    result = await reconciler.reconcile(
        "u1", [{"localId": "l1", "id": task.id, "title": "stale offline edit"}]
    )
    assert result.synced[0]["status"] == "updated"
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert fetched.title == "stale offline edit"


async def test_unknown_id_creates_new_record(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    result = await reconciler.reconcile(
        "u1", [{"localId": "l1", "id": "does-not-exist", "title": "x"}]
    )
    (entry,) = result.synced
    assert entry["status"] == "created"
    assert entry["remoteId"] != "does-not-exist"


async def test_new_and_foreign_items_scenario(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    foreign = await store.create_task("u2", TaskFields.parse({"title": "Theirs"}))

    result = await reconciler.reconcile(
        "u1",
        [
            {"localId": "l1", "title": "New task"},
            {"localId": "l2", "id": foreign.id, "title": "Hijack"},
        ],
    )

    statuses = [entry["status"] for entry in result.synced]
    assert statuses == ["created", "created"]
    assert result.errors == []
    assert foreign.id not in {entry["remoteId"] for entry in result.synced}

    untouched = await store.get_task("u2", foreign.id)
    assert untouched is not None
    assert untouched.title == "Theirs"
    assert untouched.user_id == "u2"
    assert {t.title for t in await store.list_tasks("u1")} == {"New task", "Hijack"}


async def test_client_supplied_user_id_is_ignored(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    result = await reconciler.reconcile("u1", [{"localId": "l1", "userId": "u2", "title": "x"}])
    remote_id = result.synced[0]["remoteId"]
    assert await store.get_task("u1", remote_id) is not None
    assert await store.get_task("u2", remote_id) is None


# -- Item errors -------------------------------------------------------------------


async def test_invalid_item_does_not_block_others(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    result = await reconciler.reconcile(
        "u1",
        [
            {"localId": "bad", "title": "x", "latitude": 91},
            {"localId": "good", "title": "y", "longitude": -180},
        ],
    )

    assert [e["localId"] for e in result.errors] == ["bad"]
    assert "latitude" in result.errors[0]["error"]
    assert [s["localId"] for s in result.synced] == ["good"]
    assert [t.title for t in await store.list_tasks("u1")] == ["y"]


async def test_invalid_update_leaves_record_unchanged(
    reconciler: SyncReconciler, store: TaskStore
) -> None:
    task = await store.create_task("u1", TaskFields.parse({"title": "keep", "longitude": 10}))
    result = await reconciler.reconcile(
        "u1", [{"localId": "l1", "id": task.id, "title": "changed", "longitude": 200}]
    )
    assert result.synced == []
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert (fetched.title, fetched.longitude) == ("keep", 10)


async def test_non_object_item_and_missing_local_id(reconciler: SyncReconciler) -> None:
    result = await reconciler.reconcile("u1", ["oops", {"title": "no local id"}])
    assert result.synced == []
    assert [e["error"] for e in result.errors] == ["Item must be an object", "localId is required"]


async def test_update_with_only_server_id(reconciler: SyncReconciler, store: TaskStore) -> None:
    first = await reconciler.reconcile("u1", [{"localId": "a", "title": "v1"}])
    remote_id = first.synced[0]["remoteId"]

    result = await reconciler.reconcile("u1", [{"remoteId": remote_id, "title": "v2"}])

    assert result.errors == []
    assert result.synced == [{"localId": None, "remoteId": remote_id, "status": "updated"}]
    fetched = await store.get_task("u1", remote_id)
    assert fetched is not None
    assert fetched.title == "v2"


async def test_items_must_be_a_list(reconciler: SyncReconciler) -> None:
    with pytest.raises(TaskValidationError, match="array"):
        await reconciler.reconcile("u1", {"localId": "l1"})


# -- lastSyncTime ------------------------------------------------------------------


async def test_empty_batch_updates_last_sync(
    reconciler: SyncReconciler, registry: DeviceRegistry
) -> None:
    result = await reconciler.reconcile("u1", [])

    assert result.to_dict() == {"synced": [], "errors": []}
    prefs = await registry.get_preferences("u1")
    assert prefs is not None
    assert prefs.last_sync_time is not None


async def test_last_sync_recorded_under_partial_failure(
    reconciler: SyncReconciler, registry: DeviceRegistry
) -> None:
    await reconciler.reconcile("u1", [{"localId": "bad", "latitude": -100}])
    prefs = await registry.get_preferences("u1")
    assert prefs is not None
    assert prefs.last_sync_time is not None


async def test_status(reconciler: SyncReconciler) -> None:
    before = await reconciler.status("u1")
    assert before["lastSyncTime"] is None
    assert before["pendingCount"] == 0

    await reconciler.reconcile("u1", [])
    after = await reconciler.status("u1")
    assert after["lastSyncTime"] is not None
    assert after["pendingCount"] == 0
    assert after["serverTime"] >= after["lastSyncTime"]
