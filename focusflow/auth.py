"""Bearer credential verification."""

from __future__ import annotations

import hmac
from typing import Protocol, runtime_checkable

from focusflow.config import settings
from focusflow.errors import UnauthorizedError


@runtime_checkable
class IdentityVerifier(Protocol):
    """Turns a bearer credential into a stable user id."""

    async def verify(self, token: str) -> str:
        """Return the user id, or raise UnauthorizedError."""
        ...


class StaticTokenVerifier:
    """Verifies tokens against a fixed ``{token: user_id}`` table."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = tokens if tokens is not None else settings.get_api_tokens()

    async def verify(self, token: str) -> str:
        for known, user_id in self._tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return user_id
        msg = "Unauthorized"
        raise UnauthorizedError(msg)


def bearer_token(header: str | None) -> str:
    """Extract the credential from an ``Authorization: Bearer ...`` header."""
    if not header or not header.startswith("Bearer "):
        msg = "Missing token"
        raise UnauthorizedError(msg)
    token = header[len("Bearer "):].strip()
    if not token:
        msg = "Missing token"
        raise UnauthorizedError(msg)
    return token
