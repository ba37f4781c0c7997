"""Firebase Cloud Messaging (HTTP v1) implementation of PushGateway."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiohttp
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from focusflow.config import settings
from focusflow.push.gateway import PushMessage, PushResult

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


def load_credentials(path: str | Path) -> service_account.Credentials:
    """Load service-account credentials scoped for FCM sends."""
    path = Path(path)
    if not path.exists():
        msg = f"FCM service account file not found at {path}"
        raise FileNotFoundError(msg)
    return service_account.Credentials.from_service_account_file(str(path), scopes=[FCM_SCOPE])


def _error_code(status: int, body: Any) -> str:
    """Extract the FCM errorCode from an error response.

    Without one the failure is reported as ``HTTP_<status>``, which is
    never a permanent token error.
    """
    if isinstance(body, dict):
        error = body.get("error")
        details = error.get("details") if isinstance(error, dict) else None
        for detail in details or []:
            code = detail.get("errorCode") if isinstance(detail, dict) else None
            if code:
                return str(code)
    return f"HTTP_{status}"


class FCMGateway:
    """Sends push notifications through the FCM HTTP v1 API.

    Each message is a separate POST; a batch is sent concurrently on one
    shared aiohttp session.  Never raises for delivery problems; every
    failure becomes a :class:`PushResult`.

    Args:
        project_id: Firebase project. Defaults to the setting, then to the
            service account's own project.
        access_token: Static OAuth token, used only without *credentials*.
        base_url: FCM API root.
        timeout: Per-request timeout in seconds.
        credentials: google-auth credentials, refreshed before a batch
            when expired. Loaded from ``FCM_SERVICE_ACCOUNT_FILE`` when
            neither this nor *access_token* is given.
    """

    def __init__(
        self,
        project_id: str | None = None,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        credentials: Any = None,
    ) -> None:
        if credentials is None and access_token is None and settings.fcm_service_account_file:
            credentials = load_credentials(settings.fcm_service_account_file)
        self._credentials = credentials
        if project_id is None:
            project_id = settings.fcm_project_id or getattr(credentials, "project_id", None) or ""
        self._project_id = project_id
        self._access_token = (
            access_token if access_token is not None else settings.fcm_access_token
        )
        self._base_url = (base_url or settings.fcm_base_url).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout or settings.push_timeout_seconds)
        self._session: aiohttp.ClientSession | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._project_id and (self._credentials is not None or self._access_token))

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/v1/projects/{self._project_id}/messages:send"

    def _get_session(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _bearer_token(self) -> str:
        """Current OAuth token, refreshing the credentials if expired."""
        if self._credentials is None:
            return self._access_token
        async with self._refresh_lock:
            if not self._credentials.valid:
                logger.info("Refreshing FCM credentials")
                await asyncio.to_thread(self._credentials.refresh, Request())
        return self._credentials.token

    async def send_batch(self, messages: list[PushMessage]) -> list[PushResult]:
        if not messages:
            return []
        if not self.configured:
            logger.error("Push not configured, missing FCM project id or credentials")
            return [
                PushResult(token=m.token, success=False, error_code="NOT_CONFIGURED")
                for m in messages
            ]
        try:
            bearer = await self._bearer_token()
        except GoogleAuthError:
            logger.exception("FCM credential refresh failed")
            return [
                PushResult(token=m.token, success=False, error_code="AUTH_ERROR")
                for m in messages
            ]
        headers = {"Authorization": f"Bearer {bearer}"}
        session = self._get_session()
        return list(
            await asyncio.gather(*(self._send_one(session, m, headers) for m in messages))
        )

    async def _send_one(
        self, session: aiohttp.ClientSession, message: PushMessage, headers: dict[str, str]
    ) -> PushResult:
        payload = {
            "message": {
                "token": message.token,
                "notification": {"title": message.title, "body": message.body},
                "data": message.data,
            }
        }
        try:
            async with session.post(self.endpoint, json=payload, headers=headers) as resp:
                if resp.status == 200:
                    body = await resp.json(content_type=None)
                    return PushResult(
                        token=message.token,
                        success=True,
                        message_id=(body or {}).get("name"),
                    )
                try:
                    body = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = None
                code = _error_code(resp.status, body)
                logger.warning("FCM send failed: status=%d code=%s", resp.status, code)
                return PushResult(token=message.token, success=False, error_code=code)
        except (aiohttp.ClientError, TimeoutError):
            logger.exception("FCM send failed (network error)")
            return PushResult(token=message.token, success=False, error_code="NETWORK_ERROR")
