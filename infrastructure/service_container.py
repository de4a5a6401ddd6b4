"""
Service container for dependency injection and initialization.

This module centralizes service creation and wiring so bot.py only has to
build a ServiceConfig and hand over the discord client.

Usage:
    container = ServiceContainer(config)
    container.initialize(bot)

    # Access services
    orchestrator = container.orchestrator
    channel = container.channel
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from domain.services.round_sequencer import MapCatalog, RoundSequencer
from domain.services.team_formation_service import TeamFormationService
from services.interfaces import IAnnouncementChannel, IIdentityRegistry, ILobbyClient
from services.ready_check_service import ReadinessCoordinator
from services.session_orchestrator import OrchestratorSettings, SessionOrchestrator
from services.session_registry import SessionRegistry
from services.timer_service import TimerService

logger = logging.getLogger("scrim_bot.infrastructure.container")


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    # Discord
    guild_id: int | None = None
    poll_channel_id: int | None = None
    session_channel_id: int | None = None
    voice_channel_id: int | None = None

    # Testing mode
    testing: bool = False
    test_reaction_threshold: int = 2
    test_start_delay_seconds: float = 30

    # Interest poll
    reaction_threshold: int = 8
    min_players_per_team: int = 4
    slot_emojis: list[str] = field(default_factory=lambda: ["1️⃣", "2️⃣", "3️⃣", "4️⃣"])
    slot_labels: list[str] = field(default_factory=lambda: ["Monday", "Tuesday", "Wednesday", "Thursday"])
    slot_weekdays: list[int] = field(default_factory=lambda: [1, 2, 3, 4])
    session_start_hour_utc: int = 18
    reminder_lead_minutes: int = 30
    scheduled_match_spec: str = "4-All"
    scheduled_rounds_per_map: int = 3

    # Reactions
    ready_emoji: str = "👍"
    join_emoji: str = "👍"
    ready_check_timeout_seconds: float = 0

    # Lobby service
    lobby_api_url: str = "http://localhost:8080"
    lobby_api_timeout_seconds: float = 15

    # Data and identity
    maps_file: str = "data/maps_by_type.json"
    identity_role_prefix: str = "id-"
    affiliation_roles: list[str] = field(default_factory=lambda: ["A-Team", "B-Team", "C-Team"])
    affiliation_main_suffix: str = "-Main"

    def orchestrator_settings(self) -> OrchestratorSettings:
        return OrchestratorSettings(
            reaction_threshold=self.reaction_threshold,
            min_per_team=self.min_players_per_team,
            slot_keys=list(self.slot_emojis),
            slot_labels=list(self.slot_labels),
            slot_weekdays=list(self.slot_weekdays),
            session_start_hour_utc=self.session_start_hour_utc,
            reminder_lead_seconds=self.reminder_lead_minutes * 60,
            scheduled_match_spec=self.scheduled_match_spec,
            scheduled_rounds_per_map=self.scheduled_rounds_per_map,
            join_symbol=self.join_emoji,
            ready_timeout_seconds=self.ready_check_timeout_seconds,
            testing=self.testing,
            test_threshold=self.test_reaction_threshold,
            test_start_delay_seconds=self.test_start_delay_seconds,
        )


class ServiceContainer:
    """
    Central container for all application services.

    Handles initialization order and dependency injection. The external
    adapters (channel, lobby client, identity registry) can be passed in;
    otherwise the Discord and HTTP implementations are built from config.

    Example:
        container = ServiceContainer(config)
        container.initialize(bot)

        # Services are now available
        orchestrator = container.orchestrator
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        channel: IAnnouncementChannel | None = None,
        lobby_client: ILobbyClient | None = None,
        identity_registry: IIdentityRegistry | None = None,
        catalog: MapCatalog | None = None,
    ):
        self.config = config or ServiceConfig()
        self._initialized = False
        self._services: dict[str, Any] = {
            "channel": channel,
            "lobby_client": lobby_client,
            "identity": identity_registry,
            "catalog": catalog,
        }

    @property
    def is_initialized(self) -> bool:
        """Check if container has been initialized."""
        return self._initialized

    def initialize(self, bot=None) -> None:
        """
        Initialize all services in correct order.

        This method is idempotent - calling it multiple times has no effect.

        Args:
            bot: discord client, required only when adapters were not injected
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")
        self._init_catalog()
        self._init_adapters(bot)
        self._init_core_services()
        self._init_orchestrator()

        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_catalog(self) -> None:
        if self._services["catalog"] is not None:
            return
        try:
            catalog = MapCatalog.load(self.config.maps_file)
        except FileNotFoundError:
            logger.warning(f"Maps file {self.config.maps_file} not found; map wildcards will be rejected")
            catalog = MapCatalog()
        self._services["catalog"] = catalog
        logger.debug(f"Loaded map categories {catalog.categories}")

    def _init_adapters(self, bot) -> None:
        """Build the Discord and HTTP adapters that were not injected."""
        logger.debug("Initializing adapters")
        cfg = self.config

        if self._services["channel"] is None:
            from infrastructure.discord_channel import DiscordAnnouncementChannel

            self._services["channel"] = DiscordAnnouncementChannel(
                bot,
                channel_id=cfg.session_channel_id or cfg.poll_channel_id,
                guild_id=cfg.guild_id,
                voice_channel_id=cfg.voice_channel_id,
            )

        if self._services["identity"] is None:
            from infrastructure.role_identity_registry import DiscordRoleIdentityRegistry

            self._services["identity"] = DiscordRoleIdentityRegistry(
                bot,
                guild_id=cfg.guild_id,
                id_role_prefix=cfg.identity_role_prefix,
                affiliations=cfg.affiliation_roles,
                main_suffix=cfg.affiliation_main_suffix,
            )

        if self._services["lobby_client"] is None:
            from infrastructure.lobby_api_client import LobbyApiClient

            self._services["lobby_client"] = LobbyApiClient(
                cfg.lobby_api_url, timeout_seconds=cfg.lobby_api_timeout_seconds
            )

    def _init_core_services(self) -> None:
        """Initialize services with no collaborators."""
        logger.debug("Initializing core services")
        self._services["timers"] = TimerService()
        self._services["readiness"] = ReadinessCoordinator(ready_symbol=self.config.ready_emoji)
        self._services["registry"] = SessionRegistry()
        self._services["sequencer"] = RoundSequencer(self._services["catalog"])
        self._services["team_formation"] = TeamFormationService(self.config.min_players_per_team)

    def _init_orchestrator(self) -> None:
        logger.debug("Initializing orchestrator")
        self._services["orchestrator"] = SessionOrchestrator(
            channel=self._services["channel"],
            lobby_client=self._services["lobby_client"],
            identity_registry=self._services["identity"],
            timer_service=self._services["timers"],
            readiness=self._services["readiness"],
            sequencer=self._services["sequencer"],
            team_formation=self._services["team_formation"],
            registry=self._services["registry"],
            settings=self.config.orchestrator_settings(),
        )

    # =========================================================================
    # Service accessors
    # =========================================================================

    @property
    def channel(self) -> IAnnouncementChannel | None:
        return self._services.get("channel")

    @property
    def lobby_client(self) -> ILobbyClient | None:
        return self._services.get("lobby_client")

    @property
    def identity_registry(self) -> IIdentityRegistry | None:
        return self._services.get("identity")

    @property
    def catalog(self) -> MapCatalog | None:
        return self._services.get("catalog")

    @property
    def sequencer(self) -> RoundSequencer | None:
        return self._services.get("sequencer")

    @property
    def timer_service(self) -> TimerService | None:
        return self._services.get("timers")

    @property
    def readiness(self) -> ReadinessCoordinator | None:
        return self._services.get("readiness")

    @property
    def session_registry(self) -> SessionRegistry | None:
        return self._services.get("registry")

    @property
    def orchestrator(self) -> SessionOrchestrator | None:
        """Get the session orchestrator."""
        return self._services.get("orchestrator")

    def expose_to_bot(self, bot) -> None:
        """
        Attach services to the bot object for access in cogs.

        Args:
            bot: The Discord bot instance
        """
        bot.service_config = self.config
        bot.orchestrator = self.orchestrator
        bot.announcement_channel = self.channel
        bot.map_catalog = self.catalog
        bot.session_registry = self.session_registry
        logger.debug("Services exposed to bot")
