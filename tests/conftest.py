"""Shared test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from focusflow.devices.registry import DeviceRegistry
from focusflow.notifications.dispatcher import NotificationDispatcher
from focusflow.tasks.store import TaskStore
from tests.fakes import FakeGateway

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_singletons():
    TaskStore._reset()
    DeviceRegistry._reset()
    yield
    TaskStore._reset()
    DeviceRegistry._reset()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def store(db_path: Path) -> TaskStore:
    return TaskStore(db_path=db_path)


@pytest.fixture
def registry(db_path: Path) -> DeviceRegistry:
    return DeviceRegistry(db_path=db_path)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dispatcher(registry: DeviceRegistry, gateway: FakeGateway) -> NotificationDispatcher:
    return NotificationDispatcher(registry, gateway, default_timezone="UTC")
