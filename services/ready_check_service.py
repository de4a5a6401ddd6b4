"""
ReadinessCoordinator: confirms every session participant is online before a
lobby is requested.

Tracks state for active ready checks, including:
- Which participants have reacted with the ready symbol
- Whether the check completed or was abandoned (and why)
- The prompt message and the reaction stream feeding the check
"""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum

from domain.models.participant import Participant
from services.interfaces import IAnnouncementChannel, MessageRef, Notice, NoticeKind
from utils.reaction_stream import ReactionStream

logger = logging.getLogger("scrim_bot.services.ready_check")


class ReadyCheckStatus(str, Enum):
    OPEN = "open"
    ALL_READY = "all_ready"
    ABANDONED = "abandoned"


@dataclass
class ReadyCheckState:
    """State for an active ready check."""

    check_id: int
    participants: dict[int, Participant]  # user_id -> participant
    ready_players: set[int] = field(default_factory=set)
    status: ReadyCheckStatus = ReadyCheckStatus.OPEN
    message_ref: MessageRef | None = None
    stream: ReactionStream | None = None
    abandon_reason: str | None = None

    @property
    def total_players(self) -> set[int]:
        return set(self.participants)

    @property
    def pending_players(self) -> set[int]:
        return self.total_players - self.ready_players

    @property
    def is_complete(self) -> bool:
        return bool(self.participants) and not self.pending_players


class ReadinessCoordinator:
    """Runs ready checks; one per key (the session id)."""

    def __init__(self, ready_symbol: str = "👍"):
        self.ready_symbol = ready_symbol
        self._active_checks: dict[int, ReadyCheckState] = {}
        self._auto_ids = itertools.count(1_000_000)

    def start_check(self, participants: list[Participant], check_id: int | None = None) -> ReadyCheckState:
        """
        Register a new ready check.

        Args:
            participants: Session participants; unregistered ones are left out
            check_id: Key for later lookups and cancellation (defaults to a fresh id)

        Returns:
            ReadyCheckState for this check
        """
        if check_id is None:
            check_id = next(self._auto_ids)
        roster = {p.user_id: p for p in participants if p.is_registered}
        state = ReadyCheckState(check_id=check_id, participants=roster)
        self._active_checks[check_id] = state
        logger.info(f"Started ready check {check_id}: {len(roster)} participants")
        return state

    def mark_ready(self, check_id: int, user_id: int) -> bool:
        """
        Mark a participant as ready.

        Returns:
            True if the participant was marked, False for unknown checks or
            users outside the roster (their reactions are ignored)
        """
        state = self._active_checks.get(check_id)
        if not state or state.status is not ReadyCheckStatus.OPEN:
            return False
        if user_id not in state.participants:
            logger.debug(f"Ignoring ready reaction from non-participant {user_id} in check {check_id}")
            return False
        state.ready_players.add(user_id)
        logger.info(
            f"Participant {user_id} ready in check {check_id} "
            f"({len(state.ready_players)}/{len(state.participants)} ready)"
        )
        return True

    def unmark_ready(self, check_id: int, user_id: int) -> bool:
        state = self._active_checks.get(check_id)
        if not state or state.status is not ReadyCheckStatus.OPEN:
            return False
        if user_id not in state.ready_players:
            return False
        state.ready_players.discard(user_id)
        logger.info(f"Participant {user_id} no longer ready in check {check_id}")
        return True

    def get_state(self, check_id: int) -> ReadyCheckState | None:
        return self._active_checks.get(check_id)

    def active_checks(self) -> list[ReadyCheckState]:
        return list(self._active_checks.values())

    def cancel_check(self, check_id: int, reason: str = "cancelled") -> bool:
        """
        Abandon an open ready check. The waiting await_ready call returns an
        empty mapping.
        """
        state = self._active_checks.get(check_id)
        if not state or state.status is not ReadyCheckStatus.OPEN:
            logger.debug(f"No open ready check {check_id} to cancel")
            return False
        state.status = ReadyCheckStatus.ABANDONED
        state.abandon_reason = reason
        if state.stream is not None:
            state.stream.stop()
        logger.info(f"Abandoned ready check {check_id}: {reason}")
        return True

    async def await_ready(
        self,
        participants: list[Participant],
        channel: IAnnouncementChannel,
        check_id: int | None = None,
    ) -> dict[int, int]:
        """
        Post a readiness prompt and wait until every participant reacts.

        Suspends until all listed participants have signalled ready or the check
        is cancelled through cancel_check(). No timeout is applied here.

        Args:
            participants: Who must be ready
            channel: Where to post the prompt and watch reactions
            check_id: Key to cancel the check by

        Returns:
            user_id -> external game id when all are ready; {} when abandoned

        Raises:
            ChannelUnavailable: If the prompt cannot be posted
        """
        state = self.start_check(participants, check_id)
        check_id = state.check_id
        stream = None
        try:
            if not state.participants:
                state.status = ReadyCheckStatus.ABANDONED
                state.abandon_reason = "no registered participants"
                return {}

            ref = await channel.post_message(self._prompt(len(state.participants)))
            if state.status is not ReadyCheckStatus.OPEN:
                return {}
            state.message_ref = ref
            stream = channel.observe_reactions(ref)
            state.stream = stream
            await channel.add_reaction(ref, self.ready_symbol)

            async for event in stream:
                if event.symbol != self.ready_symbol:
                    continue
                if event.added:
                    self.mark_ready(check_id, event.user_id)
                else:
                    self.unmark_ready(check_id, event.user_id)
                if state.is_complete:
                    state.status = ReadyCheckStatus.ALL_READY
                    break
        finally:
            if stream is not None:
                stream.stop()
            self._active_checks.pop(check_id, None)

        if state.status is ReadyCheckStatus.ALL_READY:
            logger.info(f"Ready check {check_id} complete: all {len(state.participants)} ready")
            return {uid: p.external_game_id for uid, p in state.participants.items()}

        if state.status is ReadyCheckStatus.OPEN:
            state.status = ReadyCheckStatus.ABANDONED
            state.abandon_reason = state.abandon_reason or "reaction stream closed"
        return {}

    def _prompt(self, count: int) -> Notice:
        return Notice(
            kind=NoticeKind.READY_PROMPT,
            title="Online Check in 📝",
            description=(
                "All players confirmed for a session.\n\n"
                f"React with {self.ready_symbol} when you are **online and logged in**.\n\n"
                f"**We need all {count} players to react in order for invites to be sent out.**"
            ),
        )
