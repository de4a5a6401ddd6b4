"""
Collaborator interfaces (ABCs).

The orchestrator only talks to the outside world through these contracts:
the announcement channel (Discord), the external lobby service (HTTP) and the
identity registry (Discord roles). Tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from domain.models.participant import Participant
from utils.reaction_stream import ReactionEvent, ReactionStream

__all__ = [
    "IAnnouncementChannel",
    "IIdentityRegistry",
    "ILobbyClient",
    "LobbyCreated",
    "LobbyUpdated",
    "MessageRef",
    "Notice",
    "NoticeKind",
    "ReactionEvent",
    "ReactionStream",
]


@dataclass(frozen=True)
class MessageRef:
    channel_id: int
    message_id: int


class NoticeKind(str, Enum):
    POLL = "poll"
    SLOT_CONFIRMED = "slot_confirmed"
    SLOT_CANCELLED = "slot_cancelled"
    REMINDER = "reminder"
    JOIN_PROMPT = "join_prompt"
    JOINED = "joined"
    REGISTRATION_REQUIRED = "registration_required"
    READY_PROMPT = "ready_prompt"
    TEAMS_FORMED = "teams_formed"
    SESSION_CREATED = "session_created"
    ROUND_STARTED = "round_started"
    ROUND_ENDED = "round_ended"
    LOBBY_STALE = "lobby_stale"
    SESSION_CANCELLED = "session_cancelled"
    FAILURE = "failure"


@dataclass
class Notice:
    """Structured message content; channel adapters decide how to render it."""

    kind: NoticeKind
    title: str
    description: str = ""
    fields: list[tuple[str, str]] = field(default_factory=list)
    mention_users: bool = False


@dataclass(frozen=True)
class LobbyCreated:
    lobby_id: str
    offline_invites: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LobbyUpdated:
    status: str
    lobby_id: str | None = None  # set when the service moved the session to a new room


class IAnnouncementChannel(ABC):
    """Where notices are posted and reactions are collected."""

    @abstractmethod
    async def post_message(self, notice: Notice) -> MessageRef:
        """Post a notice. Raises ChannelUnavailable if the channel cannot be reached."""
        ...

    @abstractmethod
    async def add_reaction(self, ref: MessageRef, symbol: str) -> None:
        ...

    @abstractmethod
    async def remove_reaction(self, ref: MessageRef, symbol: str, user_id: int) -> None:
        """Remove one user's reaction (used to reject unregistered joiners)."""
        ...

    @abstractmethod
    def observe_reactions(self, ref: MessageRef) -> ReactionStream:
        """Open a stream of reaction events on a message, until stopped."""
        ...

    @abstractmethod
    async def current_reactors(self, ref: MessageRef, symbol: str) -> list[int]:
        """User ids (bots excluded) currently reacting with symbol."""
        ...

    @abstractmethod
    async def create_scheduled_event(
        self, name: str, start_time: datetime, description: str
    ) -> int | None:
        """Create a calendar event, returning its id."""
        ...

    @abstractmethod
    async def delete_scheduled_event(self, event_id: int) -> None:
        ...


class ILobbyClient(ABC):
    """The external game-lobby service."""

    @abstractmethod
    async def create_lobby(
        self,
        map_ref: str,
        team_a: list[str],
        team_b: list[str],
        players: list[str],
        ready_requirement: dict[str, int],
    ) -> LobbyCreated:
        """Raises LobbyCreateError."""
        ...

    @abstractmethod
    async def update_lobby(self, map_ref: str) -> LobbyUpdated:
        """Raises LobbyUpdateError."""
        ...

    @abstractmethod
    async def destroy_lobby(self) -> str:
        """Raises LobbyDestroyError."""
        ...


class IIdentityRegistry(ABC):
    """Maps channel users to external game ids and affiliations."""

    @abstractmethod
    async def resolve_external_id(self, user_id: int) -> int | None:
        ...

    @abstractmethod
    async def affiliation_of(self, user_id: int) -> str | None:
        ...

    async def resolve_participant(self, user_id: int, display_name: str | None = None) -> Participant:
        external_id = await self.resolve_external_id(user_id)
        affiliation = await self.affiliation_of(user_id) if external_id is not None else None
        return Participant(
            user_id=user_id,
            display_name=display_name,
            external_game_id=external_id,
            affiliation=affiliation,
        )
