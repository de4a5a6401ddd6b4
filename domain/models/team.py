"""
Team domain model.
"""

from domain.models.participant import Participant

MIXED_LABEL = "Mixed"


class Team:
    """
    A named group of participants assembled for one match.

    This is a pure domain model with no infrastructure dependencies.
    """

    def __init__(self, label: str, members: list[Participant]):
        """
        Initialize a team.

        Args:
            label: Affiliation name, or "Mixed" for teams drawn from the open pool
            members: Registered participants, in discovery order
        """
        unregistered = [p.user_id for p in members if not p.is_registered]
        if unregistered:
            raise ValueError(f"Team members must be registered: {unregistered}")
        self.label = label
        self.members = list(members)

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return f"Team(label={self.label!r}, members={[p.user_id for p in self.members]})"

    @property
    def is_mixed(self) -> bool:
        return self.label == MIXED_LABEL

    def contains(self, user_id: int) -> bool:
        return any(p.user_id == user_id for p in self.members)

    def user_ids(self) -> set[int]:
        return {p.user_id for p in self.members}

    def external_ids(self) -> list[str]:
        """External game ids as the lobby service expects them (strings)."""
        return [str(p.external_game_id) for p in self.members]

    def mentions(self) -> str:
        return ", ".join(p.mention for p in self.members)
