"""
Domain services containing pure scheduling logic.
"""

from domain.services.round_sequencer import MapCatalog, MapEntry, RoundAdvance, RoundSequencer
from domain.services.team_formation_service import TeamFormationService, TeamPair, form_teams

__all__ = [
    "MapCatalog",
    "MapEntry",
    "RoundAdvance",
    "RoundSequencer",
    "TeamFormationService",
    "TeamPair",
    "form_teams",
]
