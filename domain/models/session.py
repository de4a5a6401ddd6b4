"""
Session domain model: one confirmed match in progress.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from domain.models.participant import Participant
from domain.models.team import Team

if TYPE_CHECKING:
    from services.timer_service import ScheduledTimer


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"  # confirmed, waiting for its start time
    READY_CHECK = "ready_check"  # waiting for every participant to signal ready
    LIVE = "live"  # external lobby exists, rounds in progress
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED}


@dataclass
class Session:
    """
    A confirmed match and everything it owns.

    The orchestrator is the only writer. Timers scheduled on behalf of the
    session are attached here so that ending the session always cancels them.
    """

    session_id: int
    participants: list[Participant]
    rounds: list[str]
    team_a: Team | None = None
    team_b: Team | None = None
    self_select: bool = False
    current_round_index: int = 0
    external_lobby_id: str | None = None
    slot_key: str | None = None  # poll slot this session came from, None for manual sessions
    start_time: datetime | None = None
    status: SessionStatus = SessionStatus.SCHEDULED
    offline_invites: list[str] = field(default_factory=list)
    timers: list["ScheduledTimer"] = field(default_factory=list)

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)

    @property
    def current_map(self) -> str | None:
        if 0 <= self.current_round_index < len(self.rounds):
            return self.rounds[self.current_round_index]
        return None

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_STATUSES

    @property
    def is_manual(self) -> bool:
        return self.slot_key is None

    def external_ids(self) -> list[str]:
        return [str(p.external_game_id) for p in self.participants]

    def mentions(self) -> str:
        return ", ".join(p.mention for p in self.participants)

    def attach_timer(self, timer: "ScheduledTimer | None") -> None:
        if timer is not None:
            self.timers.append(timer)

    def cancel_timers(self) -> int:
        """Cancel every pending timer owned by this session."""
        cancelled = sum(1 for timer in self.timers if timer.cancel())
        self.timers.clear()
        return cancelled

    def finish(self, status: SessionStatus) -> None:
        """Move to a terminal status, cancelling timers in the same step."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status} is not a terminal status")
        self.cancel_timers()
        self.status = status
