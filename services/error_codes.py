"""
Error codes carried by failed Results.

Usage:
    from services.error_codes import TEAM_FORMATION_FAILED
    from services.result import Result

    if len(pool) < min_per_team * 2:
        return Result.fail("Not enough registered participants", code=TEAM_FORMATION_FAILED)
"""

# General
VALIDATION_ERROR = "validation_error"
STATE_ERROR = "state_error"

# Team formation
TEAM_FORMATION_FAILED = "team_formation_failed"
INSUFFICIENT_PARTICIPANTS = "insufficient_participants"

# Match specification / rounds
INVALID_SPEC = "invalid_spec"

# Sessions
SESSION_NOT_FOUND = "session_not_found"
READY_CHECK_ABANDONED = "ready_check_abandoned"

# Lobby service
UNKNOWN_LOBBY = "unknown_lobby"
LOBBY_ERROR = "lobby_error"

# Announcement channel
CHANNEL_UNAVAILABLE = "channel_unavailable"
