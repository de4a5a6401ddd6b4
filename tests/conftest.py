"""
Pytest fixtures for tests.

In-memory stand-ins for the three external collaborators (announcement
channel, lobby service, identity registry) plus a small map catalog, so the
orchestrator can be driven end to end without Discord or HTTP.
"""

import asyncio
import itertools
from datetime import datetime

import pytest

from domain.models.participant import Participant
from domain.services.round_sequencer import MapCatalog, RoundSequencer
from domain.services.team_formation_service import TeamFormationService
from services.errors import ChannelUnavailable, LobbyCreateError, LobbyDestroyError, LobbyUpdateError
from services.interfaces import (
    IAnnouncementChannel,
    IIdentityRegistry,
    ILobbyClient,
    LobbyCreated,
    LobbyUpdated,
    MessageRef,
    Notice,
    NoticeKind,
)
from services.ready_check_service import ReadinessCoordinator
from services.session_orchestrator import OrchestratorSettings, SessionOrchestrator
from services.session_registry import SessionRegistry
from services.timer_service import TimerService
from utils.reaction_stream import ReactionEvent, ReactionStream

TEST_CHANNEL_ID = 4242

MAPS = {
    "4": [
        {"name": "All 4v4 maps", "value": "4-All"},
        {"name": "Mozdok", "value": "levels/missions/mozdok.blk"},
        {"name": "Fire Arc", "value": "levels/missions/fire_arc.blk"},
        {"name": "Sinai", "value": "levels/missions/sinai.blk"},
    ],
    "2": [
        {"name": "All 2v2 maps", "value": "2-All"},
        {"name": "Duel Quarry", "value": "levels/missions/duel_quarry.blk"},
    ],
    "6": [
        {"name": "All 6v6 maps", "value": "6-All"},
    ],
}


async def settle(rounds: int = 25) -> None:
    """Let pending tasks (stream pumps, timers) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeChannel(IAnnouncementChannel):
    """Records every notice and lets tests push reactions onto messages."""

    def __init__(self):
        self.posted: list[tuple[MessageRef, Notice]] = []
        self.bot_reactions: list[tuple[MessageRef, str]] = []
        self.removed_reactions: list[tuple[MessageRef, str, int]] = []
        self.events_created: dict[int, tuple[str, datetime]] = {}
        self.events_deleted: list[int] = []
        self.fail_posts = False
        self.fail_reactions = False
        self.fail_events = False
        self._streams: dict[int, list[ReactionStream]] = {}
        self._reactors: dict[tuple[int, str], list[int]] = {}
        self._message_ids = itertools.count(1000)
        self._event_ids = itertools.count(9000)

    async def post_message(self, notice: Notice) -> MessageRef:
        if self.fail_posts:
            raise ChannelUnavailable("channel is down")
        ref = MessageRef(channel_id=TEST_CHANNEL_ID, message_id=next(self._message_ids))
        self.posted.append((ref, notice))
        return ref

    async def add_reaction(self, ref: MessageRef, symbol: str) -> None:
        if self.fail_reactions:
            raise ChannelUnavailable("missing add reactions permission")
        self.bot_reactions.append((ref, symbol))

    async def remove_reaction(self, ref: MessageRef, symbol: str, user_id: int) -> None:
        self.removed_reactions.append((ref, symbol, user_id))
        self.react(ref, symbol, user_id, added=False)

    def observe_reactions(self, ref: MessageRef) -> ReactionStream:
        stream = ReactionStream(ref.message_id, on_close=self._forget)
        self._streams.setdefault(ref.message_id, []).append(stream)
        return stream

    def _forget(self, stream: ReactionStream) -> None:
        streams = self._streams.get(stream.message_id, [])
        if stream in streams:
            streams.remove(stream)

    def watching(self, ref: MessageRef) -> bool:
        return bool(self._streams.get(ref.message_id))

    def react(self, ref: MessageRef, symbol: str, user_id: int, added: bool = True) -> None:
        reactors = self._reactors.setdefault((ref.message_id, symbol), [])
        if added and user_id not in reactors:
            reactors.append(user_id)
        elif not added and user_id in reactors:
            reactors.remove(user_id)
        event = ReactionEvent(symbol=symbol, user_id=user_id, added=added)
        for stream in list(self._streams.get(ref.message_id, [])):
            stream.push(event)

    async def current_reactors(self, ref: MessageRef, symbol: str) -> list[int]:
        return list(self._reactors.get((ref.message_id, symbol), []))

    async def create_scheduled_event(self, name: str, start_time: datetime, description: str) -> int | None:
        if self.fail_events:
            raise ChannelUnavailable("no permission to manage events")
        event_id = next(self._event_ids)
        self.events_created[event_id] = (name, start_time)
        return event_id

    async def delete_scheduled_event(self, event_id: int) -> None:
        self.events_deleted.append(event_id)

    def notices(self, kind: NoticeKind | None = None) -> list[Notice]:
        return [n for _, n in self.posted if kind is None or n.kind is kind]

    def last_ref(self, kind: NoticeKind) -> MessageRef:
        for ref, notice in reversed(self.posted):
            if notice.kind is kind:
                return ref
        raise AssertionError(f"No {kind} notice posted")


class FakeLobbyClient(ILobbyClient):
    """Lobby service double that records calls and can be told to fail."""

    def __init__(self):
        self.created: list[dict] = []
        self.updated: list[str] = []
        self.destroyed = 0
        self.offline_invites: list[str] = []
        self.create_error: LobbyCreateError | None = None
        self.update_error: LobbyUpdateError | None = None
        self.destroy_error: LobbyDestroyError | None = None
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self._rooms = itertools.count(500)

    async def _call(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def create_lobby(self, map_ref, team_a, team_b, players, ready_requirement) -> LobbyCreated:
        await self._call()
        self.created.append(
            {
                "map": map_ref,
                "team_a": list(team_a),
                "team_b": list(team_b),
                "players": list(players),
                "ready": dict(ready_requirement),
            }
        )
        if self.create_error is not None:
            raise self.create_error
        return LobbyCreated(lobby_id=str(next(self._rooms)), offline_invites=list(self.offline_invites))

    async def update_lobby(self, map_ref: str) -> LobbyUpdated:
        await self._call()
        self.updated.append(map_ref)
        if self.update_error is not None:
            raise self.update_error
        return LobbyUpdated(status="ok")

    async def destroy_lobby(self) -> str:
        await self._call()
        self.destroyed += 1
        if self.destroy_error is not None:
            raise self.destroy_error
        return "Lobby destroyed"


class FakeIdentityRegistry(IIdentityRegistry):
    def __init__(self, external_ids: dict[int, int] | None = None, affiliations: dict[int, str] | None = None):
        self.external_ids = external_ids or {}
        self.affiliations = affiliations or {}

    def register(self, user_id: int, external_id: int, affiliation: str | None = None) -> None:
        self.external_ids[user_id] = external_id
        if affiliation is not None:
            self.affiliations[user_id] = affiliation

    async def resolve_external_id(self, user_id: int) -> int | None:
        return self.external_ids.get(user_id)

    async def affiliation_of(self, user_id: int) -> str | None:
        return self.affiliations.get(user_id)


def make_participants(count: int, start: int = 1, affiliation: str | None = None) -> list[Participant]:
    return [
        Participant(user_id=uid, external_game_id=10_000 + uid, affiliation=affiliation)
        for uid in range(start, start + count)
    ]


@pytest.fixture
def catalog():
    return MapCatalog.from_dict(MAPS)


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def lobby_client():
    return FakeLobbyClient()


@pytest.fixture
def identity():
    """Users 1-20 are registered with game id 10000 + user id."""
    return FakeIdentityRegistry({uid: 10_000 + uid for uid in range(1, 21)})


@pytest.fixture
def make_orchestrator(channel, lobby_client, identity, catalog):
    """Build an orchestrator over the fakes; keyword arguments override settings."""

    def _make(**overrides) -> SessionOrchestrator:
        defaults = dict(
            reaction_threshold=8,
            min_per_team=4,
            scheduled_match_spec="levels/missions/mozdok.blk",
            scheduled_rounds_per_map=3,
            testing=True,
            test_threshold=8,
            test_start_delay_seconds=0.2,
            reminder_lead_seconds=0.1,
        )
        defaults.update(overrides)
        orchestrator = SessionOrchestrator(
            channel=channel,
            lobby_client=lobby_client,
            identity_registry=identity,
            timer_service=TimerService(),
            readiness=ReadinessCoordinator(),
            sequencer=RoundSequencer(catalog),
            team_formation=TeamFormationService(defaults["min_per_team"]),
            registry=SessionRegistry(),
            settings=OrchestratorSettings(**defaults),
        )
        return orchestrator

    return _make
