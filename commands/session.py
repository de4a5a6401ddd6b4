"""
Session commands: /session, /cancelsession, /help.
"""

import asyncio
import logging

import discord
from discord import app_commands
from discord.ext import commands

from services.errors import ChannelUnavailable
from services.session_orchestrator import ManualSessionRequest
from utils.command_helpers import handle_result
from utils.interaction_safety import safe_defer, safe_followup

logger = logging.getLogger("scrim_bot.commands.session")

DEFAULT_MATCH_TYPE = 4


class SessionCommands(commands.Cog):
    """Slash commands for ad-hoc sessions."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self._session_tasks: set[asyncio.Task] = set()

    def cog_unload(self):
        for task in list(self._session_tasks):
            task.cancel()

    @property
    def orchestrator(self):
        return getattr(self.bot, "orchestrator", None)

    @property
    def catalog(self):
        return getattr(self.bot, "map_catalog", None)

    async def map_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        """Maps for the match type picked so far (4v4 if none yet)."""
        if self.catalog is None:
            return []
        match_type = getattr(interaction.namespace, "match_type", None) or DEFAULT_MATCH_TYPE
        return [
            app_commands.Choice(name=entry.name[:100], value=entry.value)
            for entry in self.catalog.search(str(match_type), current or "")
        ]

    @app_commands.command(name="session", description="Start a custom lobby session")
    @app_commands.describe(
        self_select="If false, the bot assigns teams; if true, teams are up to the players",
        rounds_per_map="Number of rounds played on each selected map",
        match_type="Players per team",
        map_option="Select a map for your chosen match type",
    )
    @app_commands.choices(
        rounds_per_map=[app_commands.Choice(name=str(n), value=n) for n in range(1, 6)],
        match_type=[
            app_commands.Choice(name="1v1 Joust", value=1),
            app_commands.Choice(name="2v2", value=2),
            app_commands.Choice(name="4v4", value=4),
            app_commands.Choice(name="6v6", value=6),
        ],
    )
    @app_commands.autocomplete(map_option=map_autocomplete)
    async def session(
        self,
        interaction: discord.Interaction,
        self_select: bool,
        rounds_per_map: int,
        match_type: int,
        map_option: str,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        if self.orchestrator is None:
            await safe_followup(interaction, content="❌ The scheduler is not ready yet.", ephemeral=True)
            return

        request = ManualSessionRequest(
            match_spec=map_option,
            rounds_per_map=rounds_per_map,
            players_per_team=match_type,
            self_select=self_select,
            requested_by=interaction.user.id,
        )
        logger.info(f"/session from {interaction.user.id}: {request}")

        # Validate before anything is posted
        rounds = self.orchestrator.sequencer.expand(request.match_spec, request.rounds_per_map)
        if not await handle_result(interaction, rounds):
            return

        task = asyncio.create_task(self._run_session(request))
        self._session_tasks.add(task)
        task.add_done_callback(self._session_tasks.discard)
        await safe_followup(
            interaction,
            content=f"✅ Session queue opened: {len(rounds.value)} round(s), {match_type}v{match_type}.",
            ephemeral=True,
        )

    async def _run_session(self, request: ManualSessionRequest) -> None:
        try:
            result = await self.orchestrator.on_manual_session_request(request)
        except ChannelUnavailable as exc:
            logger.error(f"Session for {request.requested_by} could not be announced: {exc}")
            return
        if result:
            logger.info(f"Manual session {result.value.session_id} is live")
        else:
            logger.info(f"Manual session ended early ({result.error_code}): {result.error}")

    @app_commands.command(name="cancelsession", description="Cancel an active session")
    @app_commands.describe(session_id="Id of the session to cancel")
    @app_commands.default_permissions(manage_guild=True)
    async def cancel_session(self, interaction: discord.Interaction, session_id: int):
        if not await safe_defer(interaction, ephemeral=True):
            return
        result = await self.orchestrator.cancel_session(
            session_id, reason=f"Cancelled by {interaction.user.display_name}."
        )
        await handle_result(interaction, result, success_msg=f"Session {session_id} cancelled.")

    @app_commands.command(name="help", description="Show usage instructions for the bot")
    async def help(self, interaction: discord.Interaction):
        cfg = getattr(self.bot, "service_config", None)
        threshold = cfg.reaction_threshold if cfg else 8
        poll_channel = f"<#{cfg.poll_channel_id}>" if cfg and cfg.poll_channel_id else "the scrims channel"
        embed = discord.Embed(
            title="🤖 Scrim Bot Help",
            description="This bot supports two ways of organizing scrims:",
            color=discord.Color.blue(),
        )
        embed.add_field(
            name="📅 Weekly Scrim Schedule",
            value=(
                f"Every week an interest check is posted in {poll_channel}.\n"
                f"React with the number for the days you're available. If {threshold}+ players react, "
                "a match is scheduled."
            ),
            inline=False,
        )
        embed.add_field(
            name="⚔️ /session Command",
            value=(
                "Create a spontaneous custom match session at any time.\n"
                "Players react with 👍 to join. 1v1, 2v2, 4v4 and 6v6 are available."
            ),
            inline=False,
        )
        embed.add_field(
            name="⚠️ Important Notes",
            value="You must have your game ID registered (an `id-<number>` role) to be invited.",
            inline=False,
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(SessionCommands(bot))
