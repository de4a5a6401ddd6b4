"""
Tests for SessionRegistry.
"""

import pytest

from domain.models.session import Session
from services.session_registry import SessionRegistry, normalize_lobby_id
from tests.conftest import make_participants


def _session(session_id=1):
    return Session(session_id=session_id, participants=make_participants(2), rounds=["a"])


class TestSessionRegistry:
    def test_lobby_ids_are_keyed_as_strings(self):
        registry = SessionRegistry()
        session = _session()

        registry.register(501, session)

        assert registry.get("501") is session
        assert 501 in registry
        assert session.external_lobby_id == "501"
        assert normalize_lobby_id(None) is None

    def test_register_rejects_lobby_owned_by_other_session(self):
        registry = SessionRegistry()
        registry.register("501", _session(1))

        with pytest.raises(ValueError):
            registry.register("501", _session(2))

    def test_rekey_moves_session(self):
        registry = SessionRegistry()
        session = _session()
        registry.register("501", session)

        assert registry.rekey("501", "502") is session
        assert registry.get("501") is None
        assert registry.get("502") is session
        assert registry.rekey("999", "1000") is None

    def test_remove_drops_both_indexes(self):
        registry = SessionRegistry()
        session = _session()
        registry.register("501", session)

        assert registry.remove(session)
        assert len(registry) == 0
        assert registry.get_session(1) is None

    def test_tracked_sessions_without_lobby(self):
        registry = SessionRegistry()
        pending = _session(2)
        live = _session(1)
        registry.track(pending)
        registry.register("501", live)

        assert registry.all_sessions() == [live, pending]
        assert registry.live_sessions() == [live]
        assert not registry.remove(pending)
        assert registry.get_session(2) is None
