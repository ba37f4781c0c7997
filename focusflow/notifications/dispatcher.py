"""NotificationDispatcher: fans one notification out to all of a user's devices."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from focusflow.config import settings
from focusflow.push.gateway import PushMessage

if TYPE_CHECKING:
    from datetime import datetime

    from focusflow.devices.registry import DeviceRegistry
    from focusflow.push.gateway import PushGateway, PushResult

logger = logging.getLogger(__name__)

REMINDER = "reminder"

SKIP_NO_USER = "user not found"
SKIP_NOTIFICATIONS_DISABLED = "notifications disabled"
SKIP_REMINDERS_DISABLED = "reminders disabled"
SKIP_QUIET_HOURS = "quiet hours"
SKIP_NO_DEVICES = "no devices"
GATEWAY_ERROR = "gateway error"


@dataclass
class DeliveryOutcome:
    """Result of one dispatch. Skips are outcomes with a ``reason``, not errors."""

    delivered: bool
    success_count: int = 0
    failure_count: int = 0
    pruned: list[str] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def skipped(cls, reason: str) -> DeliveryOutcome:
        return cls(delivered=False, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        if self.reason is not None and not self.success_count and not self.failure_count:
            return {"delivered": False, "reason": self.reason}
        out: dict[str, Any] = {
            "delivered": self.delivered,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
        }
        if self.reason is not None:
            out["reason"] = self.reason
        return out


class NotificationDispatcher:
    """Delivers a message to every registered device of a user.

    Honors the user's preferences and quiet hours, then sends one batch via
    the push gateway and prunes tokens the gateway reports as permanently
    invalid.

    Args:
        registry: DeviceRegistry holding devices and preferences.
        gateway: PushGateway used for the batch send.
        default_timezone: IANA zone for users without one (default from settings).
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        gateway: PushGateway,
        default_timezone: str | None = None,
    ) -> None:
        self._registry = registry
        self._gateway = gateway
        self._default_timezone = default_timezone or settings.default_timezone

    async def deliver(
        self,
        user_id: str,
        title: str,
        body: str,
        metadata: dict[str, Any] | None = None,
        *,
        kind: str = REMINDER,
        now: datetime | None = None,
    ) -> DeliveryOutcome:
        """Send *title*/*body* with *metadata* to all of *user_id*'s devices.

        *kind* is the message class; ``"reminder"`` messages additionally
        respect ``reminderEnabled``.  *now* overrides the clock used for
        quiet hours.
        """
        prefs = await self._registry.get_preferences(user_id)
        if prefs is None:
            return self._skip(user_id, SKIP_NO_USER)
        if not prefs.notification_enabled:
            return self._skip(user_id, SKIP_NOTIFICATIONS_DISABLED)
        if kind == REMINDER and not prefs.reminder_enabled:
            return self._skip(user_id, SKIP_REMINDERS_DISABLED)
        if prefs.in_quiet_hours(prefs.local_now(self._default_timezone, now)):
            return self._skip(user_id, SKIP_QUIET_HOURS)

        devices = await self._registry.list_devices(user_id)
        if not devices:
            return self._skip(user_id, SKIP_NO_DEVICES)

        data = {key: str(value) for key, value in (metadata or {}).items() if value is not None}
        messages = [
            PushMessage(token=device.token, title=title, body=body, data=dict(data))
            for device in devices
        ]
        try:
            results = await self._gateway.send_batch(messages)
        except Exception:
            logger.exception("Push gateway failed for user %s", user_id)
            return DeliveryOutcome(
                delivered=False, failure_count=len(messages), reason=GATEWAY_ERROR
            )

        return await self._collect(user_id, results)

    async def _collect(self, user_id: str, results: list[PushResult]) -> DeliveryOutcome:
        success = sum(1 for r in results if r.success)
        failures = [r for r in results if not r.success]
        dead = [r.token for r in failures if r.is_permanent]
        for r in failures:
            if not r.is_permanent:
                logger.warning(
                    "Transient push failure for user %s: %s", user_id, r.error_code
                )

        if dead:
            removed = await self._registry.remove_tokens(user_id, dead)
            logger.info("Pruned %d invalid token(s) for user %s", removed, user_id)

        logger.info(
            "Dispatched to user %s: %d sent, %d failed", user_id, success, len(failures)
        )
        return DeliveryOutcome(
            delivered=success > 0,
            success_count=success,
            failure_count=len(failures),
            pruned=dead,
        )

    @staticmethod
    def _skip(user_id: str, reason: str) -> DeliveryOutcome:
        logger.info("Skipping notification for user %s: %s", user_id, reason)
        return DeliveryOutcome.skipped(reason)
