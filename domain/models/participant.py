"""
Participant domain model.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Participant:
    """
    A person eligible to join a session.

    This is a pure domain model with no infrastructure dependencies.
    A participant without an external game id can react to polls but can
    never be placed in a Team or Session.
    """

    user_id: int  # Discord user ID
    display_name: str | None = None
    external_game_id: int | None = None
    affiliation: str | None = None  # e.g. "A-Team", None if unaffiliated

    @property
    def is_registered(self) -> bool:
        return self.external_game_id is not None

    @property
    def mention(self) -> str:
        return f"<@{self.user_id}>"
