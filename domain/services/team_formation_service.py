"""
Team formation domain service.

Splits a roster of registered participants into two teams, preferring
whole affiliation groups (clan teams) over mixed pickup teams.
"""

from dataclasses import dataclass
from typing import Callable, Iterable

from domain.models.participant import Participant
from domain.models.team import MIXED_LABEL, Team
from services.error_codes import TEAM_FORMATION_FAILED, VALIDATION_ERROR
from services.result import Result

AffiliationLookup = Callable[[Participant], str | None]


@dataclass(frozen=True)
class TeamPair:
    team_a: Team
    team_b: Team

    @property
    def is_mixed_split(self) -> bool:
        """True when neither team is an affiliation group (players pick sides themselves)."""
        return self.team_a.is_mixed and self.team_b.is_mixed

    @property
    def size(self) -> int:
        return len(self.team_a) + len(self.team_b)


def _unique_registered(participants: Iterable[Participant]) -> list[Participant]:
    seen: set[int] = set()
    pool = []
    for participant in participants:
        if not participant.is_registered or participant.user_id in seen:
            continue
        seen.add(participant.user_id)
        pool.append(participant)
    return pool


def form_teams(
    participants: Iterable[Participant],
    affiliation_of: AffiliationLookup,
    min_per_team: int,
) -> Result[TeamPair]:
    """
    Form two teams from a participant roster.

    Participants are partitioned by affiliation; a group is eligible when it has
    at least `min_per_team` members.

    - Two or more eligible groups: the two largest face each other (ties keep
      discovery order). Extra groups and unaffiliated players sit out.
    - Exactly one eligible group: it faces a "Mixed" team of everyone else,
      provided the roster totals 2 x min_per_team and the mixed side reaches
      min_per_team.
    - No eligible group: the roster is split first half / second half into two
      "Mixed" teams if it totals 2 x min_per_team.

    Deterministic for a given input order. Unregistered participants and
    duplicates are ignored.

    Args:
        participants: Roster in discovery (reaction) order
        affiliation_of: Returns a participant's affiliation label, or None
        min_per_team: Minimum team size

    Returns:
        Result with a TeamPair, or a failed Result coded TEAM_FORMATION_FAILED
    """
    if min_per_team < 1:
        return Result.fail(f"min_per_team must be at least 1, got {min_per_team}", code=VALIDATION_ERROR)

    pool = _unique_registered(participants)
    groups: dict[str, list[Participant]] = {}
    for participant in pool:
        label = affiliation_of(participant)
        if label and label != MIXED_LABEL:
            groups.setdefault(label, []).append(participant)

    eligible = [(label, members) for label, members in groups.items() if len(members) >= min_per_team]

    if len(eligible) >= 2:
        # sorted() is stable, so equal-sized groups keep discovery order
        ranked = sorted(eligible, key=lambda item: len(item[1]), reverse=True)
        (label_a, members_a), (label_b, members_b) = ranked[:2]
        return Result.ok(TeamPair(Team(label_a, members_a), Team(label_b, members_b)))

    if len(eligible) == 1:
        label, members = eligible[0]
        member_ids = {p.user_id for p in members}
        rest = [p for p in pool if p.user_id not in member_ids]
        if len(pool) >= 2 * min_per_team and len(rest) >= min_per_team:
            return Result.ok(TeamPair(Team(label, members), Team(MIXED_LABEL, rest)))
        return Result.fail(
            f"{label} is eligible but only {len(rest)} other registered participants are available",
            code=TEAM_FORMATION_FAILED,
        )

    if len(pool) >= 2 * min_per_team:
        half = len(pool) // 2
        return Result.ok(TeamPair(Team(MIXED_LABEL, pool[:half]), Team(MIXED_LABEL, pool[half:])))

    return Result.fail(
        f"Need {2 * min_per_team} registered participants, have {len(pool)}",
        code=TEAM_FORMATION_FAILED,
    )


def _participant_affiliation(participant: Participant) -> str | None:
    return participant.affiliation


class TeamFormationService:
    """
    Pure domain service wrapping form_teams with the configured team minimum.
    """

    def __init__(self, min_per_team: int = 4):
        self.min_per_team = min_per_team

    def form(
        self,
        participants: Iterable[Participant],
        affiliation_of: AffiliationLookup | None = None,
        min_per_team: int | None = None,
    ) -> Result[TeamPair]:
        """Form teams using each participant's own affiliation unless a lookup is given."""
        return form_teams(
            participants,
            affiliation_of or _participant_affiliation,
            self.min_per_team if min_per_team is None else min_per_team,
        )

    def split(self, participants: Iterable[Participant], per_team: int) -> Result[TeamPair]:
        """Ignore affiliations and split the roster into two Mixed teams."""
        return form_teams(participants, lambda _p: None, per_team)
