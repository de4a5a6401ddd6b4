"""
Session state management.

Holds in-memory state for sessions, separated from orchestration logic.
Supports multiple concurrent sessions, each keyed by the id of the external
lobby it currently runs in.
"""

import logging

from domain.models.session import Session

logger = logging.getLogger("scrim_bot.services.session_registry")


def normalize_lobby_id(lobby_id: str | int | None) -> str | None:
    """The lobby service reports room ids as numbers or strings; key by string."""
    if lobby_id is None:
        return None
    return str(lobby_id)


class SessionRegistry:
    """
    Registry of live sessions.

    Responsibilities:
    - Look up the session behind a lobby callback
    - Track every session the orchestrator created, live or not
    - Re-key a session when the lobby service moves it to a new room

    Structure: dict[lobby_id, Session] plus dict[session_id, Session]
    """

    def __init__(self):
        self._by_lobby: dict[str, Session] = {}
        self._by_id: dict[int, Session] = {}

    def __len__(self) -> int:
        return len(self._by_lobby)

    def __contains__(self, lobby_id) -> bool:
        return normalize_lobby_id(lobby_id) in self._by_lobby

    def track(self, session: Session) -> None:
        """Remember a session that does not have a lobby yet."""
        self._by_id[session.session_id] = session

    def register(self, lobby_id: str | int, session: Session) -> None:
        """
        Key a session by its external lobby id.

        Raises:
            ValueError: If another session already owns this lobby id
        """
        key = normalize_lobby_id(lobby_id)
        existing = self._by_lobby.get(key)
        if existing is not None and existing is not session:
            raise ValueError(f"Lobby {key} already belongs to session {existing.session_id}")
        session.external_lobby_id = key
        self._by_lobby[key] = session
        self._by_id[session.session_id] = session
        logger.info(f"Registered session {session.session_id} under lobby {key}")

    def get(self, lobby_id: str | int | None) -> Session | None:
        return self._by_lobby.get(normalize_lobby_id(lobby_id))

    def get_session(self, session_id: int) -> Session | None:
        return self._by_id.get(session_id)

    def rekey(self, old_lobby_id: str | int, new_lobby_id: str | int) -> Session | None:
        """Move a session to a new lobby id. Returns None if the old id is unknown."""
        old_key = normalize_lobby_id(old_lobby_id)
        new_key = normalize_lobby_id(new_lobby_id)
        session = self._by_lobby.pop(old_key, None)
        if session is None:
            return None
        self.register(new_key, session)
        if old_key != new_key:
            logger.info(f"Session {session.session_id} moved from lobby {old_key} to {new_key}")
        return session

    def remove(self, session: Session) -> bool:
        """Drop a session from both indexes. Returns True if it was keyed by a lobby."""
        self._by_id.pop(session.session_id, None)
        key = session.external_lobby_id
        if key is not None and self._by_lobby.get(key) is session:
            del self._by_lobby[key]
            logger.info(f"Removed session {session.session_id} (lobby {key})")
            return True
        return False

    def all_sessions(self) -> list[Session]:
        """Every tracked session, sorted by session id."""
        return sorted(self._by_id.values(), key=lambda s: s.session_id)

    def live_sessions(self) -> list[Session]:
        return sorted(self._by_lobby.values(), key=lambda s: s.session_id)
