"""server.py — HTTP admin API and the live display channel.

Two surfaces on one aiohttp app:

  /api/*  JSON admin API. Bearer-token auth, one route per Board operation.
  /ws     WebSocket for displays. Snapshot on connect, then every
          broadcast event as it happens.

Errors from the board map to status codes in one middleware:
400 validation, 401/403 auth, 409 conflict, 503 store unavailable.

Lifecycle:
    server = BoardServer(board, authenticator, host="0.0.0.0", port=3000)
    port = await server.start()
    ...
    await server.stop()
"""

from __future__ import annotations

import asyncio
import socket
from typing import Any, Awaitable, Callable

import logfire
from aiohttp import WSMsgType, web

from .auth import Authenticator, Identity
from .board import Board
from .errors import (
    AuthenticationError,
    AuthorizationError,
    CallboardError,
    ValidationError,
)
from .models import EVENT_ADMIN_LOG_INIT, EVENT_INITIAL_STATE_ERROR

INITIAL_STATE_ERROR_MESSAGE = "Could not load the initial state, please refresh."

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _find_free_port() -> int:
    """Find an available TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Board errors become {"error": message} with the error's status."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except CallboardError as e:
        if e.status >= 500:
            logfire.error("{path} failed: {error}", path=request.path, error=str(e))
        return web.json_response({"error": str(e)}, status=e.status)
    except Exception:
        logfire.exception("Unhandled error on {path}", path=request.path)
        return web.json_response({"error": "Internal server error"}, status=500)


def _bearer_token(request: web.Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require(body: dict[str, Any], field: str) -> Any:
    if field not in body or body[field] is None:
        raise ValidationError(f"{field} is required")
    return body[field]


class BoardServer:
    """aiohttp server exposing a Board."""

    def __init__(
        self,
        board: Board,
        authenticator: Authenticator,
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        self._board = board
        self._auth = authenticator
        self._host = host
        self._requested_port = port

        self._port: int | None = None
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._sockets: set[web.WebSocketResponse] = set()

    # -- Properties -----------------------------------------------------------

    @property
    def base_url(self) -> str:
        if self._port is None:
            raise RuntimeError("Server not started")
        return f"http://127.0.0.1:{self._port}"

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    # -- Lifecycle ------------------------------------------------------------

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[error_middleware])
        app.router.add_get("/health", self._health)
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_get("/api/state", self._state)
        app.router.add_get("/api/logs", self._logs)
        app.router.add_post("/api/check-token", self._check_token)
        app.router.add_post("/api/number/change", self._number_change)
        app.router.add_post("/api/number/set", self._number_set)
        app.router.add_post("/api/passed/add", self._passed_add)
        app.router.add_post("/api/passed/remove", self._passed_remove)
        app.router.add_post("/api/passed/clear", self._passed_clear)
        app.router.add_post("/api/featured/add", self._featured_add)
        app.router.add_post("/api/featured/remove", self._featured_remove)
        app.router.add_post("/api/featured/clear", self._featured_clear)
        app.router.add_post("/api/settings/sound", self._settings_sound)
        app.router.add_post("/api/settings/public", self._settings_public)
        app.router.add_post("/api/logs/clear", self._logs_clear)
        app.router.add_post("/api/system/reset", self._system_reset)
        return app

    async def start(self) -> int:
        """Start serving. Returns the port number."""
        self._port = self._requested_port or _find_free_port()
        self._app = self.build_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

        logfire.info("Serving on {host}:{port}", host=self._host, port=self._port)
        return self._port

    async def stop(self) -> None:
        """Close every display connection and stop serving."""
        for ws in list(self._sockets):
            await ws.close()

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._site = None
        self._app = None

    # -- Auth -----------------------------------------------------------------

    def _identify(self, request: web.Request) -> Identity:
        identity = self._auth.authenticate(_bearer_token(request))
        if identity is None:
            raise AuthenticationError("Missing or invalid token")
        return identity

    def _admin(self, request: web.Request, action: str) -> Identity:
        identity = self._identify(request)
        if not self._auth.authorize(identity, action):
            logfire.warning(
                "{name} ({role}) denied {action}",
                name=identity.name,
                role=identity.role,
                action=action,
            )
            raise AuthorizationError(f"Not allowed: {action}")
        return identity

    # -- Public routes --------------------------------------------------------

    async def _health(self, request: web.Request) -> web.Response:
        return web.Response(text="ok")

    async def _state(self, request: web.Request) -> web.Response:
        snapshot = await self._board.snapshot()
        return web.json_response(snapshot.to_dict())

    # -- Admin routes ---------------------------------------------------------

    async def _check_token(self, request: web.Request) -> web.Response:
        who = self._identify(request)
        return web.json_response({"success": True, "user": {"name": who.name, "role": who.role}})

    async def _logs(self, request: web.Request) -> web.Response:
        self._admin(request, "logs.read")
        return web.json_response({"success": True, "logs": await self._board.admin_logs()})

    async def _number_change(self, request: web.Request) -> web.Response:
        who = self._admin(request, "number.change")
        body = await _json_body(request)
        number = await self._board.change(body.get("direction"), actor=who.name)
        return web.json_response({"success": True, "number": number})

    async def _number_set(self, request: web.Request) -> web.Response:
        who = self._admin(request, "number.set")
        body = await _json_body(request)
        number = await self._board.set_exact(_require(body, "number"), actor=who.name)
        return web.json_response({"success": True, "number": number})

    async def _passed_add(self, request: web.Request) -> web.Response:
        who = self._admin(request, "passed.add")
        body = await _json_body(request)
        numbers = await self._board.add_passed(_require(body, "number"), actor=who.name)
        return web.json_response({"success": True, "numbers": numbers})

    async def _passed_remove(self, request: web.Request) -> web.Response:
        who = self._admin(request, "passed.remove")
        body = await _json_body(request)
        numbers = await self._board.remove_passed(_require(body, "number"), actor=who.name)
        return web.json_response({"success": True, "numbers": numbers})

    async def _passed_clear(self, request: web.Request) -> web.Response:
        who = self._admin(request, "passed.clear")
        await self._board.clear_passed(actor=who.name)
        return web.json_response({"success": True, "numbers": []})

    async def _featured_add(self, request: web.Request) -> web.Response:
        who = self._admin(request, "featured.add")
        body = await _json_body(request)
        items = await self._board.add_featured(
            body.get("linkText"), body.get("linkUrl", ""), actor=who.name
        )
        return web.json_response({"success": True, "contents": [i.to_dict() for i in items]})

    async def _featured_remove(self, request: web.Request) -> web.Response:
        """Remove by {"index": n}, or by exact {"linkText", "linkUrl"} pair."""
        who = self._admin(request, "featured.remove")
        body = await _json_body(request)
        if "index" in body:
            items = await self._board.remove_featured_at(body["index"], actor=who.name)
        else:
            items = await self._board.remove_featured(
                body.get("linkText"), body.get("linkUrl", ""), actor=who.name
            )
        return web.json_response({"success": True, "contents": [i.to_dict() for i in items]})

    async def _featured_clear(self, request: web.Request) -> web.Response:
        who = self._admin(request, "featured.clear")
        await self._board.clear_featured(actor=who.name)
        return web.json_response({"success": True, "contents": []})

    async def _settings_sound(self, request: web.Request) -> web.Response:
        who = self._admin(request, "settings.sound")
        body = await _json_body(request)
        enabled = await self._board.set_sound_enabled(_require(body, "enabled"), actor=who.name)
        return web.json_response({"success": True, "isEnabled": enabled})

    async def _settings_public(self, request: web.Request) -> web.Response:
        who = self._admin(request, "settings.public")
        body = await _json_body(request)
        is_public = await self._board.set_public(_require(body, "isPublic"), actor=who.name)
        return web.json_response({"success": True, "isPublic": is_public})

    async def _logs_clear(self, request: web.Request) -> web.Response:
        who = self._admin(request, "logs.clear")
        await self._board.clear_logs(actor=who.name)
        return web.json_response({"success": True})

    async def _system_reset(self, request: web.Request) -> web.Response:
        who = self._admin(request, "system.reset")
        snapshot = await self._board.reset_all(actor=who.name)
        return web.json_response({"success": True, "state": snapshot.to_dict()})

    # -- Display channel ------------------------------------------------------

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        """One display (or admin panel) connection.

        Subscribes before reading the snapshot so nothing published in
        between is lost. Incoming messages are ignored; displays only
        listen.
        """
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)

        identity = self._auth.authenticate(request.query.get("token", ""))
        broadcaster = self._board.broadcaster
        queue = broadcaster.subscribe()
        self._sockets.add(ws)
        logfire.info(
            "Display connected ({who}, {count} open)",
            who=identity.name if identity else "public",
            count=len(self._sockets),
        )

        pump: asyncio.Task | None = None
        try:
            await self._send_initial_state(ws, identity)
            pump = asyncio.create_task(self._pump(ws, queue))
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    break
        finally:
            if pump is not None:
                pump.cancel()
                try:
                    await pump
                except asyncio.CancelledError:
                    pass
            broadcaster.unsubscribe(queue)
            self._sockets.discard(ws)
            logfire.info("Display disconnected ({count} open)", count=len(self._sockets))

        return ws

    async def _send_initial_state(self, ws: web.WebSocketResponse, identity: Identity | None) -> None:
        try:
            snapshot = await self._board.snapshot()
        except CallboardError as e:
            logfire.error("Initial state failed: {error}", error=str(e))
            await ws.send_json({"type": EVENT_INITIAL_STATE_ERROR, "data": INITIAL_STATE_ERROR_MESSAGE, "id": 0})
            return

        for event, data in snapshot.events():
            await ws.send_json({"type": event, "data": data, "id": 0})

        if identity is not None and self._auth.authorize(identity, "logs.read"):
            try:
                logs = await self._board.admin_logs()
            except CallboardError as e:
                logfire.error("Admin log history failed: {error}", error=str(e))
                return
            await ws.send_json({"type": EVENT_ADMIN_LOG_INIT, "data": logs, "id": 0})

    async def _pump(self, ws: web.WebSocketResponse, queue: asyncio.Queue) -> None:
        """Subscriber queue → socket, until shutdown sentinel or disconnect."""
        while True:
            event = await queue.get()
            if event is None:
                await ws.close()
                return
            if ws.closed:
                return
            try:
                await ws.send_json(event)
            except ConnectionResetError:
                return
