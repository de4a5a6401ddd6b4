"""
SessionOrchestrator: the scheduling lifecycle state machine.

interest poll -> threshold -> team formation -> ready check -> lobby rounds
-> completion or cancellation.

The orchestrator is the only component that creates, mutates or ends a
Session. Poll reactions are consumed from a single stream and handled one at
a time, in delivery order. Long waits (ready checks, join collection) run in
their own tasks so unrelated sessions keep moving.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from domain.models.interest_poll import InterestPoll, SlotState
from domain.models.participant import Participant
from domain.models.session import Session, SessionStatus
from domain.services.round_sequencer import RoundSequencer
from domain.services.team_formation_service import TeamFormationService
from services.error_codes import (
    CHANNEL_UNAVAILABLE,
    INSUFFICIENT_PARTICIPANTS,
    LOBBY_ERROR,
    READY_CHECK_ABANDONED,
    SESSION_NOT_FOUND,
    STATE_ERROR,
    UNKNOWN_LOBBY,
    VALIDATION_ERROR,
)
from services.errors import (
    ChannelUnavailable,
    LobbyCreateError,
    LobbyDestroyError,
    LobbyUpdateError,
)
from services.interfaces import (
    IAnnouncementChannel,
    IIdentityRegistry,
    ILobbyClient,
    MessageRef,
    Notice,
    NoticeKind,
)
from services.ready_check_service import ReadinessCoordinator
from services.result import Result
from services.session_registry import SessionRegistry
from services.timer_service import TimerService
from utils.reaction_stream import ReactionStream

logger = logging.getLogger("scrim_bot.services.orchestrator")


@dataclass
class OrchestratorSettings:
    """Tunables for the orchestrator. Built from config.py by the service container."""

    reaction_threshold: int = 8
    min_per_team: int = 4
    slot_keys: list[str] = field(default_factory=lambda: ["1️⃣", "2️⃣", "3️⃣", "4️⃣"])
    slot_labels: list[str] = field(default_factory=lambda: ["Monday", "Tuesday", "Wednesday", "Thursday"])
    slot_weekdays: list[int] = field(default_factory=lambda: [1, 2, 3, 4])
    session_start_hour_utc: int = 18
    reminder_lead_seconds: float = 30 * 60
    scheduled_match_spec: str = "4-All"
    scheduled_rounds_per_map: int = 3
    join_symbol: str = "👍"
    ready_timeout_seconds: float = 0  # 0 disables the timeout
    testing: bool = False
    test_threshold: int = 2
    test_start_delay_seconds: float = 30

    @property
    def effective_threshold(self) -> int:
        return self.test_threshold if self.testing else self.reaction_threshold


@dataclass(frozen=True)
class ManualSessionRequest:
    """A /session request that bypasses the poll."""

    match_spec: str
    rounds_per_map: int = 1
    players_per_team: int = 4
    self_select: bool = False
    requested_by: int | None = None


class SessionOrchestrator:
    def __init__(
        self,
        channel: IAnnouncementChannel,
        lobby_client: ILobbyClient,
        identity_registry: IIdentityRegistry,
        timer_service: TimerService,
        readiness: ReadinessCoordinator,
        sequencer: RoundSequencer,
        team_formation: TeamFormationService,
        registry: SessionRegistry | None = None,
        settings: OrchestratorSettings | None = None,
    ):
        self.channel = channel
        self.lobby_client = lobby_client
        self.identity = identity_registry
        self.timers = timer_service
        self.readiness = readiness
        self.sequencer = sequencer
        self.team_formation = team_formation
        self.registry = registry or SessionRegistry()
        self.settings = settings or OrchestratorSettings()

        self.poll: InterestPoll | None = None
        self._poll_ids = itertools.count(1)
        self._session_ids = itertools.count(1)
        self._poll_stream: ReactionStream | None = None
        self._poll_pump: asyncio.Task | None = None
        self._join_streams: set[ReactionStream] = set()
        # The lobby service is one shared resource: create/update/destroy never overlap
        self._lobby_lock = asyncio.Lock()

    @property
    def lobby_lock(self) -> asyncio.Lock:
        return self._lobby_lock

    # ------------------------------------------------------------------
    # Interest poll
    # ------------------------------------------------------------------

    async def open_poll(self) -> InterestPoll:
        """
        Post a fresh interest poll, resetting every slot.

        Raises:
            ChannelUnavailable: If the poll cannot be posted
        """
        self._close_poll()
        s = self.settings
        poll = InterestPoll.create(
            poll_id=next(self._poll_ids),
            created_at=self.timers.now(),
            slot_keys=s.slot_keys,
            slot_labels=s.slot_labels,
            slot_weekdays=s.slot_weekdays,
        )

        try:
            ref = await self.channel.post_message(self._poll_notice(poll))
        except ChannelUnavailable as exc:
            logger.error(f"Failed to post interest poll: {exc}")
            raise

        poll.message_ref = ref
        self.poll = poll
        stream = self.channel.observe_reactions(ref)
        self._poll_stream = stream
        self._poll_pump = asyncio.create_task(self._pump_poll_reactions(poll, stream))

        try:
            for key in poll.slots:
                await self.channel.add_reaction(ref, key)
        except ChannelUnavailable as exc:
            logger.error(f"Posted poll {poll.poll_id} but failed to add slot reactions: {exc}")
            self._close_poll()
            raise

        logger.info(f"Opened interest poll {poll.poll_id} with slots {poll.option_slots}")
        return poll

    def _close_poll(self) -> None:
        poll = self.poll
        if poll is None:
            return
        if self._poll_stream is not None:
            self._poll_stream.stop()
            self._poll_stream = None
        if self._poll_pump is not None and self._poll_pump is not asyncio.current_task():
            self._poll_pump.cancel()
        self._poll_pump = None

        for session in poll.close(self.timers.now()):
            if session.is_active and session.status is not SessionStatus.LIVE:
                self.readiness.cancel_check(session.session_id, "poll closed")
                session.finish(SessionStatus.CANCELLED)
                self.registry.remove(session)
        logger.info(f"Closed interest poll {poll.poll_id}")
        self.poll = None

    async def _pump_poll_reactions(self, poll: InterestPoll, stream: ReactionStream) -> None:
        """Feed poll reactions to the handlers strictly in arrival order."""
        async for event in stream:
            if event.symbol not in poll.slots:
                continue
            try:
                if event.added:
                    await self.on_reaction_add(event.symbol, event.user_id, event.display_name)
                else:
                    await self.on_reaction_remove(event.symbol, event.user_id)
            except Exception as exc:
                logger.error(
                    f"Failed to handle poll reaction {event.symbol} from {event.user_id}: {exc}",
                    exc_info=True,
                )

    def _active_slot(self, slot_key: str) -> SlotState | None:
        poll = self.poll
        if poll is None or not poll.is_open:
            return None
        return poll.get_slot(slot_key)

    async def on_reaction_add(
        self, slot_key: str, user_id: int, display_name: str | None = None
    ) -> Result[Session | None]:
        """
        Count a poll reaction and confirm the slot once it reaches the threshold.

        Returns:
            Result with the slot's session (None while unconfirmed), or the
            failed team formation Result when the threshold was crossed but no
            teams could be formed
        """
        slot = self._active_slot(slot_key)
        if slot is None:
            return Result.fail(f"No open poll slot {slot_key}", code=STATE_ERROR)
        if not slot.add_reactor(user_id):
            return Result.ok(slot.session)

        logger.info(f"{slot.label} has {slot.reaction_count} reaction(s)")
        if slot.confirmed:
            return Result.ok(slot.session)
        if slot.reaction_count < self.settings.effective_threshold:
            return Result.ok(None)
        return await self._confirm_slot(slot)

    async def _confirm_slot(self, slot: SlotState) -> Result[Session | None]:
        participants = [await self.identity.resolve_participant(uid) for uid in list(slot.reactors)]
        unregistered = [p.user_id for p in participants if not p.is_registered]
        if unregistered:
            logger.warning(f"{slot.label}: {len(unregistered)} reactor(s) have no registered game id")

        formed = self.team_formation.form(participants, min_per_team=self.settings.min_per_team)
        if not formed:
            logger.info(f"{slot.label} reached the threshold but teams could not be formed: {formed.error}")
            return formed

        rounds = self.sequencer.expand(
            self.settings.scheduled_match_spec, self.settings.scheduled_rounds_per_map
        )
        if not rounds:
            logger.error(f"Scheduled match spec rejected: {rounds.error}")
            return rounds

        pair = formed.value
        start_time = self._slot_start_time(slot)
        session = Session(
            session_id=next(self._session_ids),
            participants=pair.team_a.members + pair.team_b.members,
            rounds=rounds.value,
            team_a=pair.team_a,
            team_b=pair.team_b,
            self_select=pair.is_mixed_split,
            slot_key=slot.key,
            start_time=start_time,
        )
        slot.confirmed = True
        slot.session = session
        self.registry.track(session)

        s = self.settings
        session.attach_timer(
            self.timers.schedule_at(
                start_time - timedelta(seconds=s.reminder_lead_seconds),
                lambda: self._send_reminder(slot, session),
                name=f"reminder:{slot.label}:{session.session_id}",
            )
        )
        session.attach_timer(
            self.timers.schedule_at(
                start_time,
                lambda: self._run_start_check(slot, session),
                name=f"start-check:{slot.label}:{session.session_id}",
            )
        )
        logger.info(
            f"Confirmed {slot.label}: session {session.session_id} "
            f"({pair.team_a.label} vs {pair.team_b.label}) starts {start_time.isoformat()}"
        )

        slot.calendar_event_id = await self._create_calendar_event(slot, start_time)
        await self._notify(self._confirmed_notice(slot, session))
        return Result.ok(session)

    def _slot_start_time(self, slot: SlotState) -> datetime:
        now = self.timers.now()
        s = self.settings
        if s.testing:
            return now + timedelta(seconds=s.test_start_delay_seconds)
        days_ahead = (slot.weekday - now.isoweekday()) % 7
        start = (now + timedelta(days=days_ahead)).replace(
            hour=s.session_start_hour_utc, minute=0, second=0, microsecond=0
        )
        if start <= now:
            start += timedelta(days=7)
        return start

    async def _create_calendar_event(self, slot: SlotState, start_time: datetime) -> int | None:
        s = self.settings
        name = f"Scrims – {slot.label}"
        description = (
            f"In-house scrims on {slot.label} at **{start_time:%H:%M} UTC**!\n\n"
            f"🎯 **Min players:** {s.effective_threshold}"
        )
        try:
            return await self.channel.create_scheduled_event(name, start_time, description)
        except ChannelUnavailable as exc:
            logger.warning(f"Could not create calendar event for {slot.label}: {exc}")
            return None

    async def _send_reminder(self, slot: SlotState, session: Session) -> None:
        if session.status is not SessionStatus.SCHEDULED or slot.session is not session:
            return
        reactors = list(slot.reactors)
        poll = self.poll
        if poll is not None and poll.message_ref is not None:
            try:
                reactors = await self.channel.current_reactors(poll.message_ref, slot.key)
            except ChannelUnavailable as exc:
                logger.warning(f"Using cached reactors for {slot.label} reminder: {exc}")
        minutes = int(self.settings.reminder_lead_seconds // 60)
        await self._notify(
            Notice(
                kind=NoticeKind.REMINDER,
                title="⏰ Reminder!",
                description=(
                    f"Scrim for **{slot.label}** starts in {minutes} minutes!\n"
                    + ", ".join(f"<@{uid}>" for uid in reactors)
                ),
                mention_users=True,
            )
        )

    async def _run_start_check(self, slot: SlotState, session: Session) -> None:
        if session.status is not SessionStatus.SCHEDULED or slot.session is not session or not slot.confirmed:
            logger.info(f"Start check for session {session.session_id} skipped: slot no longer confirmed")
            return
        await self._launch_session(session)

    async def on_reaction_remove(self, slot_key: str, user_id: int) -> Result[Session | None]:
        """
        Uncount a poll reaction; cancel the slot's session if it falls below the threshold.

        Sessions whose lobby is already live are left to finish.
        """
        slot = self._active_slot(slot_key)
        if slot is None:
            return Result.fail(f"No open poll slot {slot_key}", code=STATE_ERROR)
        if not slot.remove_reactor(user_id):
            return Result.ok(slot.session)

        threshold = self.settings.effective_threshold
        logger.info(f"{slot.label} has {slot.reaction_count} reaction(s)")
        if not slot.confirmed or slot.reaction_count >= threshold:
            return Result.ok(slot.session)

        current = slot.session
        if current is not None and current.status is SessionStatus.LIVE:
            logger.info(f"{slot.label} dropped below threshold but session {current.session_id} is live")
            return Result.ok(current)

        event_id = slot.calendar_event_id
        # Timers are cancelled here, before any await, so none can fire against the reverted slot
        session = slot.revert()
        was_active = session is not None and session.is_active
        if was_active:
            self.readiness.cancel_check(session.session_id, "not enough players")
            session.finish(SessionStatus.CANCELLED)
            self.registry.remove(session)
        logger.info(f"{slot.label} reverted to unconfirmed ({slot.reaction_count}/{threshold})")

        if event_id is not None:
            try:
                await self.channel.delete_scheduled_event(event_id)
            except ChannelUnavailable as exc:
                logger.warning(f"Could not delete calendar event {event_id}: {exc}")

        if was_active:
            await self._notify(
                Notice(
                    kind=NoticeKind.SLOT_CANCELLED,
                    title=f"❌ Scrim for {slot.label} canceled. Not enough players.",
                    description=(
                        f"{threshold - slot.reaction_count} player(s) required to recreate event. "
                        "If interested, react to original post."
                    ),
                )
            )
        return Result.ok(session)

    # ------------------------------------------------------------------
    # Manual sessions
    # ------------------------------------------------------------------

    async def on_manual_session_request(self, request: ManualSessionRequest) -> Result[Session]:
        """
        Collect joiners for an ad-hoc session, then run it like a confirmed slot.

        Suspends until enough registered participants have joined or the join
        collection is stopped (shutdown).

        Raises:
            ChannelUnavailable: If the join announcement cannot be posted
        """
        rounds = self.sequencer.expand(request.match_spec, request.rounds_per_map)
        if not rounds:
            logger.warning(f"Rejected session request {request}: {rounds.error}")
            return rounds
        if request.players_per_team < 1:
            return Result.fail("players_per_team must be at least 1", code=VALIDATION_ERROR)

        s = self.settings
        headcount = s.test_threshold if s.testing else 2 * request.players_per_team
        ref = await self.channel.post_message(self._join_notice(request, headcount))
        joined = await self._collect_joiners(ref, headcount)
        if len(joined) < headcount:
            logger.info(f"Join collection ended with {len(joined)}/{headcount} players")
            return Result.fail(
                f"Only {len(joined)} of {headcount} players joined", code=INSUFFICIENT_PARTICIPANTS
            )

        team_a = team_b = None
        if not request.self_select:
            per_team = min(request.players_per_team, len(joined) // 2)
            formed = self.team_formation.split(joined, per_team)
            if not formed:
                await self._notify(
                    Notice(kind=NoticeKind.FAILURE, title="Could not form teams", description=formed.error or "")
                )
                return formed
            team_a, team_b = formed.value.team_a, formed.value.team_b

        session = Session(
            session_id=next(self._session_ids),
            participants=joined,
            rounds=rounds.value,
            team_a=team_a,
            team_b=team_b,
            self_select=request.self_select,
            start_time=self.timers.now(),
        )
        self.registry.track(session)
        logger.info(
            f"Manual session {session.session_id} filled: {len(joined)} players, "
            f"{session.total_rounds} rounds, self_select={request.self_select}"
        )
        return await self._launch_session(session)

    async def _collect_joiners(self, ref: MessageRef, headcount: int) -> list[Participant]:
        symbol = self.settings.join_symbol
        stream = self.channel.observe_reactions(ref)
        self._join_streams.add(stream)
        joined: dict[int, Participant] = {}
        try:
            await self.channel.add_reaction(ref, symbol)
            async for event in stream:
                if event.symbol != symbol:
                    continue
                if not event.added:
                    if joined.pop(event.user_id, None) is not None:
                        logger.info(f"{event.user_id} left the session queue ({len(joined)}/{headcount})")
                    continue
                if event.user_id in joined:
                    continue

                participant = await self.identity.resolve_participant(event.user_id, event.display_name)
                if not participant.is_registered:
                    await self._reject_unregistered(ref, symbol, participant)
                    continue

                joined[event.user_id] = participant
                await self._notify(
                    Notice(
                        kind=NoticeKind.JOINED,
                        title="Player joined",
                        description=f"✅ {participant.mention} has joined the session! ({len(joined)}/{headcount})",
                    )
                )
                if len(joined) >= headcount:
                    logger.info(f"Enough players joined: {len(joined)}/{headcount}")
                    break
        finally:
            stream.stop()
            self._join_streams.discard(stream)
        return list(joined.values())

    async def _reject_unregistered(self, ref: MessageRef, symbol: str, participant: Participant) -> None:
        logger.info(f"Rejecting join from unregistered user {participant.user_id}")
        try:
            await self.channel.remove_reaction(ref, symbol, participant.user_id)
        except ChannelUnavailable as exc:
            logger.warning(f"Could not remove reaction from {participant.user_id}: {exc}")
        await self._notify(
            Notice(
                kind=NoticeKind.REGISTRATION_REQUIRED,
                title="⚠️ Game ID Required",
                description=f"{participant.mention}, you need to register your game ID to join lobbies.",
                mention_users=True,
            )
        )

    # ------------------------------------------------------------------
    # Ready check and lobby creation
    # ------------------------------------------------------------------

    async def _launch_session(self, session: Session) -> Result[Session]:
        session.status = SessionStatus.READY_CHECK
        s = self.settings
        timeout_timer = None
        if s.ready_timeout_seconds > 0:
            timeout_timer = self.timers.schedule_in(
                s.ready_timeout_seconds,
                lambda: self._expire_ready_check(session),
                name=f"ready-timeout:{session.session_id}",
            )
            session.attach_timer(timeout_timer)

        try:
            ready = await self.readiness.await_ready(
                session.participants, self.channel, check_id=session.session_id
            )
        except ChannelUnavailable as exc:
            logger.error(f"Ready check for session {session.session_id} failed: {exc}")
            await self._fail_session(session, "Could not run the ready check.")
            return Result.fail(str(exc), code=CHANNEL_UNAVAILABLE)
        finally:
            if timeout_timer is not None:
                timeout_timer.cancel()

        if not session.is_active:
            return Result.fail(f"Session {session.session_id} ended during the ready check", code=READY_CHECK_ABANDONED)
        if not ready:
            await self._fail_session(session, "The ready check was abandoned.")
            return Result.fail("Ready check abandoned", code=READY_CHECK_ABANDONED)

        if not session.self_select and session.team_a and session.team_b:
            await self._notify(self._teams_notice(session))
        players = [str(ready[p.user_id]) for p in session.participants if p.user_id in ready]
        return await self._create_lobby(session, players)

    async def _expire_ready_check(self, session: Session) -> None:
        if self.readiness.cancel_check(session.session_id, "timed out"):
            minutes = max(1, int(self.settings.ready_timeout_seconds // 60))
            await self._fail_session(session, f"Not everyone checked in within {minutes} minute(s).")

    def _ready_requirement(self, session: Session) -> dict[str, int]:
        if session.self_select:
            return {"MinReadyTotal": len(session.participants)}
        return {"MinReadyPerTeam": len(session.participants) // 2}

    async def _create_lobby(self, session: Session, players: list[str]) -> Result[Session]:
        assigned = not session.self_select and session.team_a is not None and session.team_b is not None
        team_a = session.team_a.external_ids() if assigned else []
        team_b = session.team_b.external_ids() if assigned else []

        async with self._lobby_lock:
            if not session.is_active:
                return Result.fail(f"Session {session.session_id} ended before lobby creation", code=STATE_ERROR)
            logger.info(f"Creating round 1 of {session.total_rounds} for session {session.session_id}")
            try:
                created = await self.lobby_client.create_lobby(
                    session.rounds[0],
                    team_a,
                    team_b,
                    players,
                    self._ready_requirement(session),
                )
            except LobbyCreateError as exc:
                logger.error(f"Lobby creation failed for session {session.session_id}: {exc}", exc_info=True)
                if exc.lobby_id is not None:
                    await self._destroy_quietly(session)
                reason = "Could not create the game lobby."
            else:
                reason = None

            if reason is None and not session.is_active:
                logger.info(
                    f"Session {session.session_id} ended while lobby {created.lobby_id} was being created. "
                    "Closing it."
                )
                await self._destroy_quietly(session)
                return Result.fail(f"Session {session.session_id} ended during lobby creation", code=STATE_ERROR)

            if reason is None:
                try:
                    self.registry.register(created.lobby_id, session)
                except ValueError as exc:
                    logger.error(f"Lobby service returned a room that is already in use: {exc}")
                    reason = "The game lobby is already in use by another session."
                else:
                    # Set before the lock is released so cancellation sees a live session
                    session.status = SessionStatus.LIVE
                    session.current_round_index = 0
                    session.offline_invites = list(created.offline_invites)

        if reason is not None:
            await self._fail_session(session, reason)
            return Result.fail(reason, code=LOBBY_ERROR)

        logger.info(f"Lobby {session.external_lobby_id} created for session {session.session_id}")
        await self._notify(self._created_notice(session))
        return Result.ok(session)

    async def _destroy_quietly(self, session: Session) -> None:
        """Teardown used on failure paths; caller holds the lobby lock."""
        try:
            await self.lobby_client.destroy_lobby()
        except LobbyDestroyError as exc:
            logger.error(f"Teardown of lobby for session {session.session_id} failed: {exc}")

    async def _fail_session(self, session: Session, reason: str) -> bool:
        """End a session as failed and post its one failure notice."""
        if not session.is_active:
            return False
        self.readiness.cancel_check(session.session_id, reason)
        session.finish(SessionStatus.FAILED)
        self.registry.remove(session)
        logger.warning(f"Session {session.session_id} failed: {reason}")
        await self._notify(
            Notice(kind=NoticeKind.FAILURE, title="❌ Session aborted", description=reason)
        )
        return True

    # ------------------------------------------------------------------
    # Lobby callbacks
    # ------------------------------------------------------------------

    def _lookup(self, lobby_id, callback: str) -> Session | None:
        session = self.registry.get(lobby_id)
        if session is None:
            logger.warning(f"Received {callback} callback for unknown lobby {lobby_id}. Ignoring.")
        return session

    async def on_lobby_started(self, lobby_id) -> Result[Session]:
        session = self._lookup(lobby_id, "lobby started")
        if session is None:
            return Result.fail(f"Unknown lobby {lobby_id}", code=UNKNOWN_LOBBY)

        map_ref = session.current_map
        await self._notify(
            Notice(
                kind=NoticeKind.ROUND_STARTED,
                title="Lobby Started",
                fields=[
                    ("Room ID", str(session.external_lobby_id)),
                    ("Map", self.sequencer.catalog.name_for(map_ref) if map_ref else "Unknown"),
                    ("Round", f"{session.current_round_index + 1} of {session.total_rounds}"),
                    ("Started At", f"{self.timers.now():%Y-%m-%d %H:%M} UTC"),
                ],
            )
        )
        return Result.ok(session)

    async def on_lobby_ended(self, lobby_id) -> Result[Session]:
        session = self._lookup(lobby_id, "lobby ended")
        if session is None:
            return Result.fail(f"Unknown lobby {lobby_id}", code=UNKNOWN_LOBBY)

        async with self._lobby_lock:
            if self.registry.get(lobby_id) is not session or not session.is_active:
                return Result.fail(f"Session for lobby {lobby_id} already ended", code=STATE_ERROR)

            finished_round = session.current_round_index + 1
            advance = self.sequencer.advance(session)
            logger.info(
                f"Lobby {lobby_id} ended. Completed {finished_round} of {session.total_rounds}"
            )
            await self._notify(self._round_ended_notice(session, finished_round, advance.next_map))

            if advance.complete:
                self.registry.remove(session)
                session.finish(SessionStatus.COMPLETED)
                try:
                    await self.lobby_client.destroy_lobby()
                except LobbyDestroyError as exc:
                    logger.error(f"Failed to destroy lobby {lobby_id}: {exc}", exc_info=True)
                    await self._notify(
                        Notice(
                            kind=NoticeKind.FAILURE,
                            title="⚠️ Lobby not closed",
                            description="All rounds are done but the game lobby could not be closed.",
                        )
                    )
                logger.info(f"Session {session.session_id} complete (all {session.total_rounds} rounds done)")
                return Result.ok(session)

            logger.info(
                f"Updating lobby {lobby_id} to round {advance.round_number} of "
                f"{session.total_rounds} with map {advance.next_map}"
            )
            try:
                updated = await self.lobby_client.update_lobby(advance.next_map)
            except LobbyUpdateError as exc:
                logger.error(f"Failed to start next round for lobby {lobby_id}: {exc}", exc_info=True)
                self.registry.remove(session)
                await self._destroy_quietly(session)
                await self._fail_session(session, "Could not load the next map; the session was closed.")
                return Result.fail(str(exc), code=LOBBY_ERROR)

            self.registry.rekey(session.external_lobby_id, updated.lobby_id or session.external_lobby_id)
        return Result.ok(session)

    async def on_lobby_stale(self, lobby_id) -> Result[Session]:
        """Post an inactivity notice. Session state is left untouched."""
        session = self._lookup(lobby_id, "lobby stale")
        if session is None:
            return Result.fail(f"Unknown lobby {lobby_id}", code=UNKNOWN_LOBBY)
        await self._notify(
            Notice(
                kind=NoticeKind.LOBBY_STALE,
                title="💤 Lobby inactive",
                description=(
                    f"Lobby {session.external_lobby_id} has been inactive. "
                    f"Round {session.current_round_index + 1} of {session.total_rounds} is still open."
                ),
            )
        )
        return Result.ok(session)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def cancel_session(self, session_id: int, reason: str = "Cancelled by an organiser.") -> Result[Session]:
        session = self.registry.get_session(session_id)
        if session is None or not session.is_active:
            return Result.fail(f"No active session {session_id}", code=SESSION_NOT_FOUND)

        was_live = session.status is SessionStatus.LIVE
        event_id = None
        slot = self._slot_for(session)
        if slot is not None:
            event_id = slot.calendar_event_id
            slot.revert()
        self.readiness.cancel_check(session.session_id, reason)
        session.finish(SessionStatus.CANCELLED)
        self.registry.remove(session)
        logger.info(f"Cancelled session {session_id}: {reason}")

        if was_live:
            async with self._lobby_lock:
                await self._destroy_quietly(session)
        if event_id is not None:
            try:
                await self.channel.delete_scheduled_event(event_id)
            except ChannelUnavailable as exc:
                logger.warning(f"Could not delete calendar event {event_id}: {exc}")
        await self._notify(
            Notice(kind=NoticeKind.SESSION_CANCELLED, title="Session cancelled", description=reason)
        )
        return Result.ok(session)

    def _slot_for(self, session: Session) -> SlotState | None:
        if self.poll is None or session.slot_key is None:
            return None
        slot = self.poll.get_slot(session.slot_key)
        return slot if slot is not None and slot.session is session else None

    def shutdown(self) -> None:
        """Stop every stream, ready check and timer. Used when the bot closes."""
        self._close_poll()
        for stream in list(self._join_streams):
            stream.stop()
        for check in self.readiness.active_checks():
            self.readiness.cancel_check(check.check_id, "shutting down")
        self.timers.cancel_all()
        logger.info("Orchestrator shut down")

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    async def _notify(self, notice: Notice) -> MessageRef | None:
        try:
            return await self.channel.post_message(notice)
        except ChannelUnavailable as exc:
            logger.error(f"Failed to post {notice.kind.value} notice: {exc}")
            return None

    def _poll_notice(self, poll: InterestPoll) -> Notice:
        s = self.settings
        options = "\n".join(f"{slot.key} {slot.label}" for slot in poll.slots.values())
        return Notice(
            kind=NoticeKind.POLL,
            title="In-house Scrims Interest Check 📝",
            description=(
                f"Weekly in-house scrims at **{s.session_start_hour_utc:02d}:00 UTC**.\n"
                "React to the number for the day you're available!\n"
                f"Session happens if {s.effective_threshold} or more react.\n\n{options}"
            ),
        )

    def _confirmed_notice(self, slot: SlotState, session: Session) -> Notice:
        when = f"{session.start_time:%H:%M} UTC" if session.start_time else "the usual time"
        if session.self_select:
            return Notice(
                kind=NoticeKind.SLOT_CONFIRMED,
                title=f"Scrim confirmed for {slot.label} at {when}!",
                description=f"**Mixed Team Session:**\n{session.mentions()}",
            )
        return Notice(
            kind=NoticeKind.SLOT_CONFIRMED,
            title=f"Scrim confirmed for {slot.label} at {when}!",
            description=(
                f"🟥 **Team 1 ({session.team_a.label})**:\n{session.team_a.mentions()}\n\n"
                f"🟦 **Team 2 ({session.team_b.label})**:\n{session.team_b.mentions()}"
            ),
        )

    def _join_notice(self, request: ManualSessionRequest, headcount: int) -> Notice:
        n = request.players_per_team
        return Notice(
            kind=NoticeKind.JOIN_PROMPT,
            title="Scrim Session",
            fields=[
                ("🗺️ Map", self.sequencer.catalog.name_for(request.match_spec)),
                ("🎮 Players self-select teams", "Yes" if request.self_select else "No"),
                ("🔁 Rounds per map", str(request.rounds_per_map)),
                ("⚔️ Match type", f"{n}v{n}"),
                (
                    "✅ How to Join",
                    f"React with {self.settings.join_symbol} to join this session queue! (Min required: {headcount})",
                ),
            ],
        )

    def _teams_notice(self, session: Session) -> Notice:
        return Notice(
            kind=NoticeKind.TEAMS_FORMED,
            title="Teams formed",
            description=(
                f"🟥 **Team A** ({len(session.team_a)} players):\n{session.team_a.mentions()}\n\n"
                f"🟦 **Team B** ({len(session.team_b)} players):\n{session.team_b.mentions()}"
            ),
            mention_users=True,
        )

    def _created_notice(self, session: Session) -> Notice:
        offline = set(session.offline_invites)
        return Notice(
            kind=NoticeKind.SESSION_CREATED,
            title="Session Created",
            description=(
                f"**Map:** {self.sequencer.catalog.name_for(session.rounds[0])}\n"
                f"**Rounds:** {session.total_rounds}\n"
                f"**Players:** {len(session.participants)}"
            ),
            fields=[
                ("Offline ❌" if str(p.external_game_id) in offline else "Invited ✅", p.mention)
                for p in session.participants
            ],
            mention_users=True,
        )

    def _round_ended_notice(self, session: Session, finished_round: int, next_map: str | None) -> Notice:
        next_line = (
            f"Next map: {self.sequencer.catalog.name_for(next_map)}" if next_map else "Session complete. GG!"
        )
        return Notice(
            kind=NoticeKind.ROUND_ENDED,
            title="Lobby Ended",
            description=f"Completed round {finished_round} of {session.total_rounds}.\n{next_line}",
        )
