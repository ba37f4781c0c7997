"""Multi-device notification delivery."""

from focusflow.notifications.dispatcher import DeliveryOutcome, NotificationDispatcher

__all__ = [
    "DeliveryOutcome",
    "NotificationDispatcher",
]
