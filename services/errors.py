"""
Exceptions raised by external collaborators.

Adapters translate transport failures (discord.HTTPException, aiohttp.ClientError)
into these so the orchestrator only has to know one hierarchy.
"""


class SchedulerError(Exception):
    """Base class for all collaborator failures."""


class ChannelUnavailable(SchedulerError):
    """The announcement channel could not be reached."""


class LobbyServiceError(SchedulerError):
    """The external lobby service rejected or failed a request."""

    def __init__(self, message: str, status: str | None = None, lobby_id: str | None = None):
        self.status = status
        # Set when the service got far enough to allocate a room
        self.lobby_id = lobby_id
        super().__init__(message)


class LobbyCreateError(LobbyServiceError):
    pass


class LobbyUpdateError(LobbyServiceError):
    pass


class LobbyDestroyError(LobbyServiceError):
    pass
