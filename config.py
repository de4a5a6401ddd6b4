"""
Centralized configuration for the scrim scheduler bot.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_optional_int(env_var: str) -> int | None:
    raw = os.getenv(env_var)
    if not raw:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_int_list(env_var: str, default: list[int]) -> list[int]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return [int(x.strip()) for x in raw.split(",") if x.strip()]
    except ValueError:
        return default


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    values = [x.strip() for x in raw.split(",") if x.strip()]
    return values or default


DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
GUILD_ID = _parse_optional_int("GUILD_ID")
POLL_CHANNEL_ID = _parse_optional_int("POLL_CHANNEL_ID")
# Session announcements default to the poll channel
SESSION_CHANNEL_ID = _parse_optional_int("SESSION_CHANNEL_ID") or POLL_CHANNEL_ID
VOICE_CHANNEL_ID = _parse_optional_int("VOICE_CHANNEL_ID")  # calendar event location

TESTING_MODE = _parse_bool("TESTING_MODE", False)
TEST_REACTION_THRESHOLD = _parse_int("TEST_REACTION_THRESHOLD", 2)
TEST_START_DELAY_SECONDS = _parse_int("TEST_START_DELAY_SECONDS", 30)

# Interest poll
POLL_REACTION_THRESHOLD = _parse_int("POLL_REACTION_THRESHOLD", 8)
MIN_PLAYERS_PER_TEAM = _parse_int("MIN_PLAYERS_PER_TEAM", 4)  # smallest group that may form its own team
POLL_SLOT_EMOJIS = _parse_str_list("POLL_SLOT_EMOJIS", ["1️⃣", "2️⃣", "3️⃣", "4️⃣"])
POLL_SLOT_LABELS = _parse_str_list("POLL_SLOT_LABELS", ["Monday", "Tuesday", "Wednesday", "Thursday"])
POLL_SLOT_WEEKDAYS = _parse_int_list("POLL_SLOT_WEEKDAYS", [1, 2, 3, 4])  # ISO weekdays
POLL_WEEKDAY = _parse_int("POLL_WEEKDAY", 5)  # Python weekday(): 5 = Saturday
POLL_HOUR_UTC = _parse_int("POLL_HOUR_UTC", 12)
SESSION_START_HOUR_UTC = _parse_int("SESSION_START_HOUR_UTC", 18)
REMINDER_LEAD_MINUTES = _parse_int("REMINDER_LEAD_MINUTES", 30)

# Scheduled (poll) sessions
SCHEDULED_MATCH_SPEC = os.getenv("SCHEDULED_MATCH_SPEC", "4-All")
SCHEDULED_ROUNDS_PER_MAP = _parse_int("SCHEDULED_ROUNDS_PER_MAP", 3)

# Reactions
READY_EMOJI = os.getenv("READY_EMOJI", "👍")
JOIN_EMOJI = os.getenv("JOIN_EMOJI", "👍")
READY_CHECK_TIMEOUT_SECONDS = _parse_float("READY_CHECK_TIMEOUT_SECONDS", 0)  # 0 = wait indefinitely

# External lobby service
LOBBY_API_URL = os.getenv("LOBBY_API_URL", "http://localhost:8080")
LOBBY_API_TIMEOUT_SECONDS = _parse_float("LOBBY_API_TIMEOUT_SECONDS", 15)

# Callback HTTP server
CALLBACK_HOST = os.getenv("CALLBACK_HOST", "0.0.0.0")
CALLBACK_PORT = _parse_int("CALLBACK_PORT", 3000)

MAPS_FILE = os.getenv("MAPS_FILE", "data/maps_by_type.json")

# Identity roles
IDENTITY_ROLE_PREFIX = os.getenv("IDENTITY_ROLE_PREFIX", "id-")
AFFILIATION_ROLES = _parse_str_list("AFFILIATION_ROLES", ["A-Team", "B-Team", "C-Team"])
AFFILIATION_MAIN_SUFFIX = os.getenv("AFFILIATION_MAIN_SUFFIX", "-Main")
