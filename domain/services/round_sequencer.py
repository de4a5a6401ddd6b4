"""
Round sequencing domain service.

Expands a match specification into the ordered list of maps a session will
play and tracks a session's progress through it.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path

from domain.models.session import Session
from services.error_codes import INVALID_SPEC
from services.result import Result

WILDCARD_SUFFIX = "-All"
_WILDCARD_RE = re.compile(r"^(?P<category>[^\s]+)-All$")


@dataclass(frozen=True)
class MapEntry:
    name: str
    value: str  # map reference understood by the lobby service (mission URL)


@dataclass(frozen=True)
class RoundAdvance:
    complete: bool
    next_map: str | None = None
    round_number: int = 0  # 1-based number of the round about to be played


def wildcard_for(category: str) -> str:
    return f"{category}{WILDCARD_SUFFIX}"


def parse_wildcard(match_spec: str) -> str | None:
    """Return the category of a "<category>-All" spec, or None for a single map."""
    match = _WILDCARD_RE.match(match_spec)
    return match.group("category") if match else None


class MapCatalog:
    """Maps grouped by category (match type), in display order."""

    def __init__(self, categories: dict[str, list[MapEntry]] | None = None):
        self._categories: dict[str, list[MapEntry]] = {
            str(key): list(entries) for key, entries in (categories or {}).items()
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MapCatalog":
        return cls(
            {
                str(category): [MapEntry(name=e["name"], value=e["value"]) for e in entries]
                for category, entries in data.items()
            }
        )

    @classmethod
    def load(cls, path: str | Path) -> "MapCatalog":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    def entries(self, category: str) -> list[MapEntry]:
        return list(self._categories.get(str(category), []))

    def maps_in(self, category: str) -> list[str]:
        """Playable map values in a category, excluding the category's own wildcard entry."""
        wildcard = wildcard_for(str(category))
        return [e.value for e in self._categories.get(str(category), []) if e.value != wildcard]

    def name_for(self, value: str) -> str:
        """Display name for a map reference or wildcard."""
        for entries in self._categories.values():
            for entry in entries:
                if entry.value == value:
                    return entry.name
        category = parse_wildcard(value)
        if category is not None:
            return f"All {category}v{category} maps"
        tail = value.rstrip("/").rsplit("/", 1)[-1]
        return tail.rsplit(".", 1)[0] or value

    def search(self, category: str, text: str, limit: int = 25) -> list[MapEntry]:
        """Case-insensitive name search, for slash command autocomplete."""
        needle = text.lower()
        return [e for e in self.entries(category) if needle in e.name.lower()][:limit]


class RoundSequencer:
    """
    Pure domain service for round expansion and progress.
    """

    def __init__(self, catalog: MapCatalog):
        self.catalog = catalog

    def expand(self, match_spec: str, rounds_per_map: int) -> Result[list[str]]:
        """
        Expand a match specification into an ordered list of rounds.

        A wildcard "<category>-All" plays every map in the category, each
        repeated rounds_per_map times back to back. Anything else is a single
        map repeated rounds_per_map times.

        Args:
            match_spec: Map reference or category wildcard
            rounds_per_map: Times each map is played

        Returns:
            Result with the round list, or a failed Result coded INVALID_SPEC
        """
        if not isinstance(rounds_per_map, int) or rounds_per_map < 1:
            return Result.fail(f"rounds_per_map must be at least 1, got {rounds_per_map}", code=INVALID_SPEC)
        if not match_spec or not match_spec.strip():
            return Result.fail("Match specification is empty", code=INVALID_SPEC)

        category = parse_wildcard(match_spec)
        if category is None:
            return Result.ok([match_spec] * rounds_per_map)

        maps = self.catalog.maps_in(category)
        if not maps:
            return Result.fail(f"No maps found for type {category}", code=INVALID_SPEC)
        return Result.ok([value for value in maps for _ in range(rounds_per_map)])

    def advance(self, session: Session) -> RoundAdvance:
        """Move a session to its next round, reporting completion when none remain."""
        session.current_round_index += 1
        if session.current_round_index >= len(session.rounds):
            return RoundAdvance(complete=True, round_number=len(session.rounds))
        return RoundAdvance(
            complete=False,
            next_map=session.rounds[session.current_round_index],
            round_number=session.current_round_index + 1,
        )
