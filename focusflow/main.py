"""FocusFlow entry point."""

import asyncio
import contextlib
import logging

from focusflow.auth import StaticTokenVerifier
from focusflow.config import settings
from focusflow.devices.registry import DeviceRegistry
from focusflow.notifications.dispatcher import NotificationDispatcher
from focusflow.push.fcm import FCMGateway
from focusflow.scheduler.engine import ReminderScheduler
from focusflow.scheduler.executor import ReminderExecutor
from focusflow.sync.reconciler import SyncReconciler
from focusflow.tasks.store import TaskStore
from focusflow.tracker import TaskTracker
from focusflow.web.server import ApiServer

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)


async def run() -> None:
    """Wire the components, start the scheduler and the API, and wait."""
    store = TaskStore.get()
    registry = DeviceRegistry.get()
    gateway = FCMGateway()
    if not gateway.configured:
        logger.warning("FCM is not configured; notifications will fail")
    dispatcher = NotificationDispatcher(registry, gateway)
    scheduler = ReminderScheduler(store, ReminderExecutor(store, dispatcher))
    tracker = TaskTracker(store, registry, dispatcher, SyncReconciler(store, registry))

    verifier = StaticTokenVerifier()
    if not settings.get_api_tokens():
        logger.warning("API_TOKENS is empty; every request will be rejected")
    server = ApiServer(tracker, verifier)

    await scheduler.start()
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
        await scheduler.stop()
        await gateway.close()


def main() -> None:
    """Run FocusFlow until interrupted."""
    logger.info("Starting FocusFlow (database=%s)", settings.database_path)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())


if __name__ == "__main__":
    main()
