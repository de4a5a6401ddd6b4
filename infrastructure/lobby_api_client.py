"""
HTTP client for the external game-lobby service.

Endpoints (all POST, JSON):
    /api/custom/create   {mapUrl, teamA, teamB, players, MinReadyTotal | MinReadyPerTeam}
                         -> {"status": {"roomId": ..., "offlineInvites": [...]}}
    /api/custom/update   {missionURL} -> {"status": ...}
    /api/custom/destroy  -> {"status": "Lobby destroyed"}
"""

import asyncio
import contextlib
import logging
from urllib.parse import urljoin

import aiohttp

from services.errors import LobbyCreateError, LobbyDestroyError, LobbyServiceError, LobbyUpdateError
from services.interfaces import ILobbyClient, LobbyCreated, LobbyUpdated

logger = logging.getLogger("scrim_bot.infrastructure.lobby_api")

DESTROYED_STATUS = "Lobby destroyed"


class LobbyApiClient(ILobbyClient):
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 15,
        http_client: aiohttp.ClientSession | None = None,
    ):
        self._base_url = base_url.rstrip("/") + "/"
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._http_client = http_client

    @contextlib.asynccontextmanager
    async def _client(self):
        if self._http_client is not None:
            # Externally owned sessions are closed by their owner
            yield self._http_client
            return
        async with aiohttp.ClientSession(timeout=self._timeout) as client:
            yield client

    async def _post(self, path: str, payload: dict | None, error_cls: type[LobbyServiceError]):
        url = urljoin(self._base_url, path)
        try:
            async with self._client() as client:
                async with client.post(url, json=payload, timeout=self._timeout) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        raise error_cls(f"{path} returned HTTP {resp.status}: {text[:200]}")
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise error_cls(f"{path} request failed: {exc!r}") from exc
        except ValueError as exc:
            raise error_cls(f"{path} returned a non-JSON body") from exc

        if not isinstance(data, dict) or "status" not in data:
            raise error_cls(f"{path} response has no status: {data!r}")
        return data["status"]

    async def create_lobby(
        self,
        map_ref: str,
        team_a: list[str],
        team_b: list[str],
        players: list[str],
        ready_requirement: dict[str, int],
    ) -> LobbyCreated:
        payload = {
            "mapUrl": map_ref,
            "teamA": list(team_a),
            "teamB": list(team_b),
            "players": list(players),
            **ready_requirement,
        }
        logger.info(f"Creating lobby: map={map_ref} players={len(players)} {ready_requirement}")
        status = await self._post("api/custom/create", payload, LobbyCreateError)

        if not isinstance(status, dict) or status.get("roomId") is None:
            raise LobbyCreateError(f"Lobby service did not return a room id: {status!r}")
        room_id = str(status["roomId"])
        offline = status.get("offlineInvites") or []
        if not isinstance(offline, list):
            raise LobbyCreateError(f"Malformed offlineInvites: {offline!r}", lobby_id=room_id)

        logger.info(f"Lobby {room_id} created ({len(offline)} offline invite(s))")
        return LobbyCreated(lobby_id=room_id, offline_invites=[str(x) for x in offline])

    async def update_lobby(self, map_ref: str) -> LobbyUpdated:
        logger.info(f"Updating lobby map to {map_ref}")
        status = await self._post("api/custom/update", {"missionURL": map_ref}, LobbyUpdateError)
        if isinstance(status, dict):
            room_id = status.get("roomId")
            return LobbyUpdated(status=str(status), lobby_id=str(room_id) if room_id is not None else None)
        return LobbyUpdated(status=str(status))

    async def destroy_lobby(self) -> str:
        logger.info("Destroying lobby")
        status = await self._post("api/custom/destroy", None, LobbyDestroyError)
        if status != DESTROYED_STATUS:
            raise LobbyDestroyError(f"Unexpected destroy status: {status!r}", status=str(status))
        return status
