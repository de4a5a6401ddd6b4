"""
HTTP endpoint for lobby-service callbacks and the manual poll trigger.

Routes:
    POST /callbacks/lobby-started  {"roomId": ...}
    POST /callbacks/lobby-ended    {"roomId": ...}
    POST /callbacks/lobby-stale    {"roomId": ...}
    GET  /post-scrim-interest      post a fresh interest poll now
    GET  /                         health check
"""

import logging
from typing import Awaitable, Callable

import aiohttp.web

from services.errors import ChannelUnavailable
from services.session_orchestrator import SessionOrchestrator

logger = logging.getLogger("scrim_bot.infrastructure.callback_server")


class CallbackServer:
    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        is_ready: Callable[[], bool] = lambda: True,
        post_poll: Callable[[], Awaitable[object]] | None = None,
    ):
        self.orchestrator = orchestrator
        self.is_ready = is_ready
        self.post_poll = post_poll or orchestrator.open_poll
        self.app = aiohttp.web.Application()
        self.app.add_routes(
            [
                aiohttp.web.get("/", self.health_handler),
                aiohttp.web.get("/post-scrim-interest", self.post_interest_handler),
                aiohttp.web.post("/callbacks/lobby-started", self.lobby_started_handler),
                aiohttp.web.post("/callbacks/lobby-ended", self.lobby_ended_handler),
                aiohttp.web.post("/callbacks/lobby-stale", self.lobby_stale_handler),
            ]
        )
        self._runner: aiohttp.web.AppRunner | None = None

    async def start(self, host: str, port: int) -> None:
        self._runner = aiohttp.web.AppRunner(self.app)
        await self._runner.setup()
        site = aiohttp.web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info(f"Callback server listening on {host}:{port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Callback server stopped")

    async def health_handler(self, request):
        return aiohttp.web.Response(text="Scrim scheduler is running.")

    async def post_interest_handler(self, request):
        if not self.is_ready():
            logger.error("Poll trigger received before the bot is ready")
            return aiohttp.web.Response(status=503, text="Client is not ready.")
        try:
            await self.post_poll()
        except ChannelUnavailable as exc:
            logger.error(f"Failed to post scrim interest: {exc}")
            return aiohttp.web.Response(status=500, text="Failed to post scrim interest.")
        logger.info(f"Scrim interest posted via {request.path}")
        return aiohttp.web.Response(text="Scrim interest posted successfully.")

    async def _room_id(self, request):
        try:
            body = await request.json()
        except ValueError:
            raise aiohttp.web.HTTPBadRequest(text="Body must be JSON.")
        room_id = body.get("roomId") if isinstance(body, dict) else None
        if room_id is None:
            raise aiohttp.web.HTTPBadRequest(text="Missing roomId.")
        return room_id

    def _reply(self, result):
        if result:
            return aiohttp.web.json_response({"ok": True, "sessionId": result.value.session_id})
        # Unknown lobbies are acknowledged so the lobby service does not retry
        return aiohttp.web.json_response({"ok": False, "error": result.error, "code": result.error_code})

    async def lobby_started_handler(self, request):
        return self._reply(await self.orchestrator.on_lobby_started(await self._room_id(request)))

    async def lobby_ended_handler(self, request):
        return self._reply(await self.orchestrator.on_lobby_ended(await self._room_id(request)))

    async def lobby_stale_handler(self, request):
        return self._reply(await self.orchestrator.on_lobby_stale(await self._room_id(request)))
