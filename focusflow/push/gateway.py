"""PushGateway protocol: interface for batch push-notification transports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

# Error codes meaning the token will never work again. Covers FCM HTTP v1
# codes and the firebase-admin SDK equivalents.
PERMANENT_TOKEN_ERRORS = frozenset({
    "UNREGISTERED",
    "INVALID_ARGUMENT",
    "messaging/registration-token-not-registered",
    "messaging/invalid-registration-token",
})


@dataclass
class PushMessage:
    """One notification addressed to a single device token.

    ``data`` carries routing metadata for the client, kept apart from the
    human-readable title and body.  Values are strings, as push data
    payloads require.
    """

    token: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass
class PushResult:
    """Outcome for one token in a batch."""

    token: str
    success: bool
    error_code: str | None = None
    message_id: str | None = None

    @property
    def is_permanent(self) -> bool:
        """True when the failure means the token should be pruned."""
        return not self.success and self.error_code in PERMANENT_TOKEN_ERRORS


@runtime_checkable
class PushGateway(Protocol):
    """Protocol that all push transports must satisfy."""

    async def send_batch(self, messages: list[PushMessage]) -> list[PushResult]:
        """Send every message. Returns one result per message, in order."""
        ...
