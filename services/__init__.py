"""
Application services layer.

Services coordinate the scheduling lifecycle using domain services and the
external collaborators declared in services.interfaces. Import concrete
services from their modules; this package only re-exports the shared types.
"""

from services.errors import (
    ChannelUnavailable,
    LobbyCreateError,
    LobbyDestroyError,
    LobbyServiceError,
    LobbyUpdateError,
    SchedulerError,
)
from services.result import Result

__all__ = [
    "ChannelUnavailable",
    "LobbyCreateError",
    "LobbyDestroyError",
    "LobbyServiceError",
    "LobbyUpdateError",
    "Result",
    "SchedulerError",
]
