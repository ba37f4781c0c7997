"""Push-notification transport abstraction."""

from focusflow.push.fcm import FCMGateway
from focusflow.push.gateway import PERMANENT_TOKEN_ERRORS, PushGateway, PushMessage, PushResult

__all__ = [
    "PERMANENT_TOKEN_ERRORS",
    "FCMGateway",
    "PushGateway",
    "PushMessage",
    "PushResult",
]
