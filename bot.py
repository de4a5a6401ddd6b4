"""
Main Discord bot entry for the scrim scheduler.
"""

import logging
import os

# Configure logging BEFORE importing discord to prevent duplicate handlers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,  # Override any existing handlers (e.g., from discord.py)
)
logger = logging.getLogger("scrim_bot")


# Suppress PyNaCl warning since voice support isn't needed
class _PyNaClFilter(logging.Filter):
    """Filter out the PyNaCl warning from discord.py."""

    def filter(self, record):
        return "PyNaCl is not installed" not in record.getMessage()


logging.getLogger("discord.client").addFilter(_PyNaClFilter())

# Now import discord after logging is configured
import discord
from discord.ext import commands

# discord.py adds its own handler to the 'discord' logger on import
_discord_logger = logging.getLogger("discord")
_discord_logger.handlers.clear()
_discord_logger.setLevel(logging.INFO)

import config
from infrastructure.callback_server import CallbackServer
from infrastructure.service_container import ServiceConfig, ServiceContainer

# Bot setup

intents = discord.Intents.default()
intents.members = True  # role lookups for identity and affiliation
intents.reactions = True


class ScrimBot(commands.Bot):
    async def close(self):
        """Stop timers, streams and the callback server before disconnecting."""
        if _container is not None and _container.orchestrator is not None:
            _container.orchestrator.shutdown()
        if _callback_server is not None:
            await _callback_server.stop()
        await super().close()


bot = ScrimBot(command_prefix="!", intents=intents)

_container: ServiceContainer | None = None
_callback_server: CallbackServer | None = None


def build_service_config() -> ServiceConfig:
    return ServiceConfig(
        guild_id=config.GUILD_ID,
        poll_channel_id=config.POLL_CHANNEL_ID,
        session_channel_id=config.SESSION_CHANNEL_ID,
        voice_channel_id=config.VOICE_CHANNEL_ID,
        testing=config.TESTING_MODE,
        test_reaction_threshold=config.TEST_REACTION_THRESHOLD,
        test_start_delay_seconds=config.TEST_START_DELAY_SECONDS,
        reaction_threshold=config.POLL_REACTION_THRESHOLD,
        min_players_per_team=config.MIN_PLAYERS_PER_TEAM,
        slot_emojis=config.POLL_SLOT_EMOJIS,
        slot_labels=config.POLL_SLOT_LABELS,
        slot_weekdays=config.POLL_SLOT_WEEKDAYS,
        session_start_hour_utc=config.SESSION_START_HOUR_UTC,
        reminder_lead_minutes=config.REMINDER_LEAD_MINUTES,
        scheduled_match_spec=config.SCHEDULED_MATCH_SPEC,
        scheduled_rounds_per_map=config.SCHEDULED_ROUNDS_PER_MAP,
        ready_emoji=config.READY_EMOJI,
        join_emoji=config.JOIN_EMOJI,
        ready_check_timeout_seconds=config.READY_CHECK_TIMEOUT_SECONDS,
        lobby_api_url=config.LOBBY_API_URL,
        lobby_api_timeout_seconds=config.LOBBY_API_TIMEOUT_SECONDS,
        maps_file=config.MAPS_FILE,
        identity_role_prefix=config.IDENTITY_ROLE_PREFIX,
        affiliation_roles=config.AFFILIATION_ROLES,
        affiliation_main_suffix=config.AFFILIATION_MAIN_SUFFIX,
    )


def _init_services():
    """Initialize all services via ServiceContainer (lazy, idempotent)."""
    global _container
    if _container is not None:
        return
    _container = ServiceContainer(build_service_config())
    _container.initialize(bot)
    _container.expose_to_bot(bot)


EXTENSIONS = [
    "commands.scrim_poll",
    "commands.session",
]


async def _load_extensions():
    """Load command extensions if not already loaded."""
    _init_services()

    loaded_extensions = []
    failed_extensions = []
    for ext in EXTENSIONS:
        if ext in bot.extensions:
            logger.debug(f"Extension {ext} already loaded, skipping")
            continue
        try:
            await bot.load_extension(ext)
            loaded_extensions.append(ext)
            logger.info(f"Loaded extension: {ext}")
        except Exception as exc:
            failed_extensions.append(ext)
            logger.error(f"Failed to load extension {ext}: {exc}", exc_info=True)

    logger.info(
        f"Extension loading complete: {len(loaded_extensions)} loaded, {len(failed_extensions)} failed"
    )


async def _start_callback_server():
    global _callback_server
    if _callback_server is not None:
        return
    poll_cog = bot.get_cog("PollCog")
    _callback_server = CallbackServer(
        bot.orchestrator,
        is_ready=bot.is_ready,
        post_poll=poll_cog.post_poll if poll_cog else None,
    )
    try:
        await _callback_server.start(config.CALLBACK_HOST, config.CALLBACK_PORT)
    except OSError as exc:
        logger.error(f"Could not start callback server on port {config.CALLBACK_PORT}: {exc}", exc_info=True)
        _callback_server = None


@bot.event
async def setup_hook():
    """Load command cogs and start the callback server."""
    _init_services()
    await _load_extensions()
    await _start_callback_server()


@bot.event
async def on_ready():
    """Called when bot is ready."""
    logger.info(f"{bot.user} connected. Guilds: {len(bot.guilds)}")
    try:
        if config.GUILD_ID:
            guild = discord.Object(id=config.GUILD_ID)
            bot.tree.copy_global_to(guild=guild)
            await bot.tree.sync(guild=guild)
            logger.info(f"Slash commands synced to guild {config.GUILD_ID}.")
        else:
            await bot.tree.sync()
            logger.info("Slash commands synced globally.")
    except discord.HTTPException as exc:
        logger.error(f"Failed to sync commands: {exc}", exc_info=True)


@bot.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: discord.app_commands.AppCommandError):
    """Global error handler for app commands - prevents infinite 'thinking...' state."""
    logger.error(
        f"App command error in '{interaction.command.name if interaction.command else 'unknown'}': {error}",
        exc_info=error,
    )
    error_msg = "An error occurred while processing your command. Please try again."
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=f"❌ {error_msg}", ephemeral=True)
        else:
            await interaction.response.send_message(content=f"❌ {error_msg}", ephemeral=True)
    except discord.HTTPException as followup_error:
        logger.error(f"Failed to send error message to user: {followup_error}")


@bot.event
async def on_raw_reaction_add(payload):
    """Forward reaction adds to the poll, join and ready-check streams."""
    if _container is None or not bot.user or payload.user_id == bot.user.id:
        return
    _container.channel.dispatch_reaction(payload, added=True)


@bot.event
async def on_raw_reaction_remove(payload):
    """Forward reaction removes to the poll, join and ready-check streams."""
    if _container is None or not bot.user or payload.user_id == bot.user.id:
        return
    _container.channel.dispatch_reaction(payload, added=False)


def main():
    """Run the bot."""
    token = config.DISCORD_BOT_TOKEN or os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("ERROR: DISCORD_BOT_TOKEN not found!")
        return

    try:
        # log_handler=None keeps discord.py from adding its own handler
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
        print("\nBot stopped. Goodbye!")
    except Exception as exc:
        logger.error(f"Bot crashed: {exc}", exc_info=True)
        print(f"\nBot crashed: {exc}")


if __name__ == "__main__":
    main()
