"""
Domain models - pure data structures representing scheduling entities.
"""

from domain.models.interest_poll import InterestPoll, SlotState
from domain.models.participant import Participant
from domain.models.session import Session, SessionStatus
from domain.models.team import MIXED_LABEL, Team

__all__ = [
    "InterestPoll",
    "MIXED_LABEL",
    "Participant",
    "Session",
    "SessionStatus",
    "SlotState",
    "Team",
]
