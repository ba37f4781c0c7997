"""Tests for ReminderScheduler: APScheduler lifecycle."""

from unittest.mock import AsyncMock

import pytest

from focusflow.scheduler.engine import JOB_ID, ReminderScheduler
from focusflow.scheduler.executor import ReminderExecutor
from focusflow.tasks.store import TaskStore


@pytest.fixture
def executor() -> AsyncMock:
    ex = AsyncMock(spec=ReminderExecutor)
    ex.poll_ms = 60_000
    ex.run_once = AsyncMock(return_value=0)
    return ex


@pytest.fixture
def engine(store: TaskStore, executor: AsyncMock) -> ReminderScheduler:
    return ReminderScheduler(store=store, executor=executor, timezone="UTC")


async def test_start_and_stop(engine: ReminderScheduler) -> None:
    await engine.start()
    assert engine.running is True

    await engine.stop()
    assert engine.running is False


async def test_start_adds_single_interval_job(engine: ReminderScheduler) -> None:
    await engine.start()
    try:
        jobs = engine._scheduler.get_jobs()
        assert [j.id for j in jobs] == [JOB_ID]
        job = jobs[0]
        assert job.trigger.interval.total_seconds() == 60
        assert job.max_instances == 1
        assert job.coalesce is True
        assert job.misfire_grace_time is None
    finally:
        await engine.stop()


async def test_stop_when_not_running(engine: ReminderScheduler) -> None:
    # Should not raise
    await engine.stop()


async def test_tick_runs_executor(engine: ReminderScheduler, executor: AsyncMock) -> None:
    await engine._tick()
    executor.run_once.assert_awaited_once_with()


async def test_tick_swallows_executor_errors(
    engine: ReminderScheduler, executor: AsyncMock
) -> None:
    executor.run_once.side_effect = RuntimeError("db down")
    # Should not raise
    await engine._tick()
