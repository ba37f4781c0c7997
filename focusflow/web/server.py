"""aiohttp HTTP API over TaskTracker.

Every route except the root and ``/health`` requires an
``Authorization: Bearer <token>`` header; the verified user id is the only
ownership key the handlers pass down.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from focusflow.auth import IdentityVerifier, bearer_token
from focusflow.config import settings
from focusflow.errors import NotFoundError, TaskValidationError, UnauthorizedError
from focusflow.tracker import TaskTracker

logger = logging.getLogger(__name__)

TRACKER = web.AppKey("tracker", TaskTracker)
VERIFIER = web.AppKey("verifier", IdentityVerifier)

_PUBLIC_PATHS = {"/", "/health"}


# -- Middleware ----------------------------------------------------------------


@web.middleware
async def _error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map domain errors to JSON responses."""
    try:
        return await handler(request)
    except TaskValidationError as exc:
        return web.json_response({"error": exc.reason}, status=400)
    except NotFoundError as exc:
        return web.json_response({"error": str(exc)}, status=404)


@web.middleware
async def _auth_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Resolve the bearer credential to a user id."""
    if request.path in _PUBLIC_PATHS:
        return await handler(request)
    try:
        token = bearer_token(request.headers.get("Authorization"))
        user_id = await request.app[VERIFIER].verify(token)
    except UnauthorizedError as exc:
        logger.warning("Rejected request to %s: %s", request.path, exc)
        return web.json_response({"error": str(exc)}, status=401)
    request["user_id"] = user_id
    return await handler(request)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        msg = "invalid JSON"
        raise TaskValidationError(msg) from exc


async def _read_object(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    body = await _read_json(request)
    if not isinstance(body, dict):
        msg = "Request body must be an object"
        raise TaskValidationError(msg)
    return body


# -- Handlers ------------------------------------------------------------------


async def _root(request: web.Request) -> web.Response:
    return web.Response(text="FocusFlow API running")


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _list_tasks(request: web.Request) -> web.Response:
    tasks = await request.app[TRACKER].list_tasks(request["user_id"])
    return web.json_response([t.to_dict() for t in tasks])


async def _create_task(request: web.Request) -> web.Response:
    task = await request.app[TRACKER].create_task(
        request["user_id"], await _read_json(request)
    )
    return web.json_response(task.to_dict(), status=201)


async def _update_task(request: web.Request) -> web.Response:
    task = await request.app[TRACKER].update_task(
        request["user_id"], request.match_info["task_id"], await _read_json(request)
    )
    return web.json_response(task.to_dict())


async def _delete_task(request: web.Request) -> web.Response:
    await request.app[TRACKER].delete_task(request["user_id"], request.match_info["task_id"])
    return web.json_response({"message": "Task deleted"})


async def _notify_task(request: web.Request) -> web.Response:
    body = await _read_object(request)
    result = await request.app[TRACKER].notify_now(
        request["user_id"],
        request.match_info["task_id"],
        title=body.get("title") or None,
        body=body.get("body") or None,
    )
    return web.json_response(result)


async def _register_device(request: web.Request) -> web.Response:
    body = await _read_object(request)
    device = await request.app[TRACKER].register_device(
        request["user_id"], body.get("token"), body.get("deviceId")
    )
    return web.json_response({"ok": True, "device": device.to_dict()})


async def _unregister_device(request: web.Request) -> web.Response:
    await request.app[TRACKER].unregister_device(
        request["user_id"], request.match_info["token"]
    )
    return web.json_response({"ok": True})


async def _update_preferences(request: web.Request) -> web.Response:
    prefs = await request.app[TRACKER].update_preferences(
        request["user_id"], await _read_json(request)
    )
    return web.json_response(prefs.to_dict())


async def _sync(request: web.Request) -> web.Response:
    body = await _read_object(request)
    result = await request.app[TRACKER].reconcile(request["user_id"], body.get("items"))
    return web.json_response(result.to_dict())


async def _sync_status(request: web.Request) -> web.Response:
    return web.json_response(await request.app[TRACKER].sync_status(request["user_id"]))


def create_app(tracker: TaskTracker, verifier: IdentityVerifier) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_error_middleware, _auth_middleware])
    app[TRACKER] = tracker
    app[VERIFIER] = verifier
    app.router.add_get("/", _root)
    app.router.add_get("/health", _health)
    app.router.add_get("/tasks", _list_tasks)
    app.router.add_post("/tasks", _create_task)
    app.router.add_put("/tasks/{task_id}", _update_task)
    app.router.add_delete("/tasks/{task_id}", _delete_task)
    app.router.add_post("/tasks/{task_id}/notify", _notify_task)
    app.router.add_post("/devices", _register_device)
    app.router.add_delete("/devices/{token}", _unregister_device)
    app.router.add_put("/preferences", _update_preferences)
    app.router.add_post("/sync", _sync)
    app.router.add_get("/sync/status", _sync_status)
    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        tracker: TaskTracker,
        verifier: IdentityVerifier,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self._app = create_app(tracker, verifier)
        self.host = host or settings.http_host
        self.port = port or settings.http_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("API listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
