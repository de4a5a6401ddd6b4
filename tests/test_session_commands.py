"""
Tests for the slash command cogs.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from commands.scrim_poll import PollCog
from commands.session import SessionCommands
from domain.services.round_sequencer import MapCatalog, RoundSequencer
from services.error_codes import INVALID_SPEC, SESSION_NOT_FOUND
from services.errors import ChannelUnavailable
from services.result import Result
from tests.conftest import MAPS


def _bot(orchestrator=None):
    catalog = MapCatalog.from_dict(MAPS)
    if orchestrator is None:
        orchestrator = MagicMock()
        orchestrator.sequencer = RoundSequencer(catalog)
        orchestrator.on_manual_session_request = AsyncMock(return_value=Result.fail("stopped"))
    return SimpleNamespace(orchestrator=orchestrator, map_catalog=catalog, service_config=None)


def _interaction(match_type=None):
    interaction = MagicMock()
    interaction.user = SimpleNamespace(id=42, display_name="Organiser")
    interaction.namespace = SimpleNamespace(match_type=match_type)
    return interaction


class TestMapAutocomplete:
    @pytest.mark.asyncio
    async def test_defaults_to_four_v_four(self):
        cog = SessionCommands(_bot())

        choices = await cog.map_autocomplete(_interaction(), "")

        assert [c.value for c in choices][:2] == ["4-All", "levels/missions/mozdok.blk"]

    @pytest.mark.asyncio
    async def test_filters_by_selected_match_type(self):
        cog = SessionCommands(_bot())

        choices = await cog.map_autocomplete(_interaction(match_type=2), "duel")

        assert [c.name for c in choices] == ["Duel Quarry"]


class TestSessionCommand:
    @pytest.mark.asyncio
    async def test_invalid_map_is_rejected_before_queueing(self):
        bot = _bot()
        cog = SessionCommands(bot)
        interaction = _interaction()

        with patch("commands.session.safe_defer", new=AsyncMock(return_value=True)), patch(
            "commands.session.handle_result", new=AsyncMock(return_value=False)
        ) as handle:
            await cog.session.callback(cog, interaction, False, 2, 6, "6-All")

        assert handle.call_args.args[1].error_code == INVALID_SPEC
        bot.orchestrator.on_manual_session_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_request_runs_in_background(self):
        bot = _bot()
        cog = SessionCommands(bot)
        interaction = _interaction()

        with patch("commands.session.safe_defer", new=AsyncMock(return_value=True)), patch(
            "commands.session.safe_followup", new=AsyncMock()
        ) as followup:
            await cog.session.callback(cog, interaction, True, 2, 4, "4-All")
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        request = bot.orchestrator.on_manual_session_request.call_args.args[0]
        assert request.match_spec == "4-All"
        assert request.players_per_team == 4
        assert request.self_select is True
        assert request.requested_by == 42
        assert "6 round(s)" in followup.call_args.kwargs["content"]

    @pytest.mark.asyncio
    async def test_cancel_reports_unknown_session(self):
        orchestrator = MagicMock()
        orchestrator.cancel_session = AsyncMock(return_value=Result.fail("No active session 9", code=SESSION_NOT_FOUND))
        cog = SessionCommands(_bot(orchestrator))

        with patch("commands.session.safe_defer", new=AsyncMock(return_value=True)), patch(
            "commands.session.handle_result", new=AsyncMock(return_value=False)
        ) as handle:
            await cog.cancel_session.callback(cog, _interaction(), 9)

        orchestrator.cancel_session.assert_awaited_once_with(9, reason="Cancelled by Organiser.")
        assert handle.call_args.args[1].error_code == SESSION_NOT_FOUND


class TestPollCog:
    @pytest.mark.asyncio
    async def test_post_poll_reports_channel_failure(self):
        orchestrator = MagicMock()
        orchestrator.open_poll = AsyncMock(side_effect=ChannelUnavailable("gone"))
        cog = PollCog(SimpleNamespace(orchestrator=orchestrator), testing=True)

        assert await cog.post_poll() is False

    @pytest.mark.asyncio
    async def test_testing_mode_posts_once_when_ready(self):
        orchestrator = MagicMock()
        orchestrator.open_poll = AsyncMock(return_value=SimpleNamespace(poll_id=1))
        cog = PollCog(SimpleNamespace(orchestrator=orchestrator), testing=True)

        await cog.on_ready()
        await cog.on_ready()

        orchestrator.open_poll.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_orchestrator(self):
        cog = PollCog(SimpleNamespace(), testing=True)

        assert await cog.post_poll() is False
