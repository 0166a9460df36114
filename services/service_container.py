"""
Service Container

Central registry for the match services providing dependency injection and service lifecycle management.
"""

from typing import TYPE_CHECKING, Optional

from config.config_loader import MatchSettings
from utils.logging import get_logger

from .db import Database, SqliteMatchStore
from .expiry_sweeper import ExpirySweeper
from .match_service import MatchLifecycleManager
from .match_store import JsonMatchStore, MatchStore
from .voice_provisioner import VoiceProvisioner

if TYPE_CHECKING:
    from discord.ext.commands import Bot


def build_store(settings: MatchSettings) -> MatchStore:
    """Create the configured match store backend."""
    if settings.store_backend == "sqlite":
        return SqliteMatchStore(Database(settings.db_path))
    return JsonMatchStore(settings.store_path)


class ServiceContainer:
    """
    Central container for the match services.

    Provides a centralized access point for services throughout the bot,
    handles initialization order, and manages service dependencies.
    """

    def __init__(
        self,
        settings: MatchSettings,
        bot: Optional["Bot"] = None,
        store: MatchStore | None = None,
        provisioner: VoiceProvisioner | None = None,
    ) -> None:
        self.logger = get_logger("services.container")
        self.settings = settings
        self.bot = bot
        self._store = store
        self._provisioner = provisioner
        self._matches: MatchLifecycleManager | None = None
        self._sweeper: ExpirySweeper | None = None
        self._initialized = False

    @property
    def store(self) -> MatchStore:
        if self._store is None:
            raise RuntimeError("MatchStore not initialized")
        return self._store

    @property
    def provisioner(self) -> VoiceProvisioner:
        if self._provisioner is None:
            raise RuntimeError("VoiceProvisioner not initialized")
        return self._provisioner

    @property
    def matches(self) -> MatchLifecycleManager:
        if self._matches is None:
            raise RuntimeError("MatchLifecycleManager not initialized")
        return self._matches

    @property
    def sweeper(self) -> ExpirySweeper:
        if self._sweeper is None:
            raise RuntimeError("ExpirySweeper not initialized")
        return self._sweeper

    def get_all_services(self) -> list:
        """Get all initialized services for health monitoring."""
        services = []
        if self._store:
            services.append(self._store)
        if self._matches:
            services.append(self._matches)
        return services

    async def initialize(self) -> None:
        """Initialize all services in dependency order."""
        if self._initialized:
            self.logger.warning("ServiceContainer already initialized")
            return

        try:
            self.logger.info("Initializing services")

            if self._store is None:
                self._store = build_store(self.settings)
            await self._store.initialize()
            self.logger.debug(f"Match store initialized ({self.settings.store_backend})")

            if self._provisioner is None:
                if not self.bot:
                    raise RuntimeError("Bot instance required for VoiceProvisioner")
                self._provisioner = VoiceProvisioner(
                    self.bot, self.settings.guild_id, self.settings.voice_category_id
                )

            self._matches = MatchLifecycleManager(
                self._store, self._provisioner, self.settings
            )
            await self._matches.initialize()
            self.logger.debug("MatchLifecycleManager initialized")

            self._sweeper = ExpirySweeper(
                self._matches, interval_seconds=self.settings.sweep_interval_seconds
            )

            self._initialized = True
            self.logger.info("All services initialized successfully")

        except Exception as e:
            self.logger.exception("Failed to initialize services", exc_info=e)
            raise

    async def cleanup(self) -> None:
        """Clean up all services in reverse dependency order."""
        if not self._initialized:
            return

        self.logger.info("Cleaning up services")

        if self._sweeper:
            await self._sweeper.stop()
            self._sweeper = None

        if self._matches:
            await self._matches.shutdown()
            self._matches = None

        if self._store:
            await self._store.shutdown()

        self._initialized = False
        self.logger.info("Services cleaned up")
