"""Tests for ReminderExecutor: windowed polling and the sent flag."""

from unittest.mock import AsyncMock

import pytest

from focusflow.devices.registry import DeviceRegistry
from focusflow.notifications.dispatcher import DeliveryOutcome, NotificationDispatcher
from focusflow.scheduler.executor import ReminderExecutor, is_due, reminder_body
from focusflow.tasks.models import Task, TaskFields
from focusflow.tasks.store import TaskStore
from tests.fakes import FakeGateway

NOW = 1_800_000_000_000
POLL = 60_000
HOUR = 3_600_000


@pytest.fixture
def executor(store: TaskStore, dispatcher: NotificationDispatcher) -> ReminderExecutor:
    return ReminderExecutor(store, dispatcher, poll_ms=POLL)


async def _task(store: TaskStore, user_id: str = "u1", **payload):
    payload.setdefault("title", "Pay rent")
    return await store.create_task(user_id, TaskFields.parse(payload))


# -- Window ----------------------------------------------------------------------


@pytest.mark.parametrize(
    ("offset", "due"),
    [(-1, False), (0, True), (1, True), (POLL - 1, True), (POLL, False), (5 * POLL, False)],
)
def test_is_due_half_open_window(offset: int, due: bool) -> None:
    reminder_time = NOW
    assert is_due(reminder_time, NOW + offset, POLL) is due


def test_reminder_body() -> None:
    assert reminder_body(60) == "Starts in 60 minutes"
    assert reminder_body(1) == "Starts in 1 minute"


# -- run_once --------------------------------------------------------------------


async def test_pay_rent_scenario(
    store: TaskStore, registry: DeviceRegistry, gateway: FakeGateway, executor: ReminderExecutor
) -> None:
    await registry.register("u1", "tok-a")
    task = await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60)

    sent = await executor.run_once(NOW + 15_000)

    assert sent == 1
    (batch,) = gateway.batches
    assert batch[0].title == "Reminder: Pay rent"
    assert batch[0].body == "Starts in 60 minutes"
    assert batch[0].data == {"taskId": task.id, "action": "reminder", "type": "task"}
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert fetched.reminder_sent is True


@pytest.mark.parametrize(
    ("run_at", "dispatched"),
    [
        (NOW - 1, False),
        (NOW, True),
        (NOW + POLL - 1, True),
        (NOW + POLL, False),
        (NOW + 10 * POLL, False),
    ],
)
async def test_dispatches_iff_reminder_time_in_window(
    store: TaskStore,
    registry: DeviceRegistry,
    gateway: FakeGateway,
    executor: ReminderExecutor,
    run_at: int,
    dispatched: bool,
) -> None:
    await registry.register("u1", "tok-a")
    # reminder time == NOW
    await _task(store, startTime=NOW + 30 * 60_000, reminderOffsetMinutes=30)

    sent = await executor.run_once(run_at)

    assert (sent == 1) is dispatched
    assert bool(gateway.batches) is dispatched


async def test_sent_task_never_redispatched(
    store: TaskStore, registry: DeviceRegistry, gateway: FakeGateway, executor: ReminderExecutor
) -> None:
    await registry.register("u1", "tok-a")
    await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60)

    assert await executor.run_once(NOW) == 1
    for tick in range(1, 5):
        assert await executor.run_once(NOW + tick * 1_000) == 0

    assert len(gateway.batches) == 1


async def test_completed_task_not_reminded(
    store: TaskStore, registry: DeviceRegistry, gateway: FakeGateway, executor: ReminderExecutor
) -> None:
    await registry.register("u1", "tok-a")
    await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60, completed=True)

    assert await executor.run_once(NOW) == 0
    assert gateway.batches == []


async def test_undelivered_stays_unsent_and_retries_within_window(
    store: TaskStore, registry: DeviceRegistry, dispatcher: NotificationDispatcher
) -> None:
    # No devices yet: first pass is a policy skip.
    executor = ReminderExecutor(store, dispatcher, poll_ms=POLL)
    task = await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60)

    assert await executor.run_once(NOW) == 0
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert fetched.reminder_sent is False

    # Device appears; a pass still inside the window delivers.
    await registry.register("u1", "tok-a")
    assert await executor.run_once(NOW + 30_000) == 1


async def test_transient_failure_not_retried_after_window(
    store: TaskStore, registry: DeviceRegistry
) -> None:
    gateway = FakeGateway({"tok-a": "UNAVAILABLE"})
    executor = ReminderExecutor(
        store, NotificationDispatcher(registry, gateway, default_timezone="UTC"), poll_ms=POLL
    )
    await registry.register("u1", "tok-a")
    task = await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60)

    assert await executor.run_once(NOW) == 0
    assert await executor.run_once(NOW + POLL) == 0

    assert len(gateway.batches) == 1
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert fetched.reminder_sent is False


async def test_one_failing_task_does_not_stop_others(
    store: TaskStore, registry: DeviceRegistry
) -> None:
    await _task(store, "u1", startTime=NOW + HOUR, reminderOffsetMinutes=60)
    await _task(store, "u2", startTime=NOW + HOUR, reminderOffsetMinutes=60)

    dispatcher = AsyncMock()
    dispatcher.deliver = AsyncMock(
        side_effect=[RuntimeError("boom"), DeliveryOutcome(delivered=True, success_count=1)]
    )
    executor = ReminderExecutor(store, dispatcher, poll_ms=POLL)

    assert await executor.run_once(NOW) == 1
    assert dispatcher.deliver.await_count == 2


async def test_schedule_changed_during_dispatch_is_not_marked(
    store: TaskStore, registry: DeviceRegistry
) -> None:
    task = await _task(store, startTime=NOW + HOUR, reminderOffsetMinutes=60)

    async def deliver(*args, **kwargs):
        # Client moves the task while the notification is in flight.
        await store.update_task("u1", task.id, TaskFields.parse({"startTime": NOW + 2 * HOUR}))
        return DeliveryOutcome(delivered=True, success_count=1)

    dispatcher = AsyncMock()
    dispatcher.deliver = AsyncMock(side_effect=deliver)
    executor = ReminderExecutor(store, dispatcher, poll_ms=POLL)

    assert await executor.run_once(NOW) == 0
    fetched = await store.get_task("u1", task.id)
    assert fetched is not None
    assert fetched.reminder_sent is False



async def test_task_without_schedule_is_skipped(store: TaskStore) -> None:
    dispatcher = AsyncMock()
    executor = ReminderExecutor(store, dispatcher, poll_ms=POLL)

    assert await executor._remind(Task(id="t1", user_id="u1", title="x")) is False
    dispatcher.deliver.assert_not_awaited()
