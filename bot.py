import os
import time

import discord
from discord.ext import commands
from dotenv import load_dotenv

from config.config_loader import ConfigLoader, load_match_settings
from utils.errors import ConfigError, ProvisioningError
from utils.logging import get_logger

# Initialize logger
logger = get_logger(__name__)

# Load environment variables
load_dotenv()

# Load configuration using ConfigLoader
config = ConfigLoader.load_config()

# Load sensitive information from .env
TOKEN = os.getenv("DISCORD_TOKEN")
if not TOKEN:
    logger.critical("DISCORD_TOKEN not found in environment variables.")
    raise ValueError("DISCORD_TOKEN not set.")

# Configure intents - start from none and enable only what's required
intents = discord.Intents.none()
intents.guilds = True  # Required: Guild events, channels
intents.members = True  # Required: Member lookup when moving rostered players
intents.voice_states = True  # Required: Voice state of players and empty-channel cleanup

# List of initial extensions to load
initial_extensions = [
    "cogs.matches.commands",
    "cogs.matches.events",
]


class MatchBot(commands.Bot):
    """Bot that owns the match services and the webhook server."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)

        self.config = config
        self.start_time = time.monotonic()
        self.services = None
        self.webhook_api = None

    async def setup_hook(self) -> None:
        """Validate configuration, start services and the webhook, load cogs."""
        settings = load_match_settings(self.config)

        from services.service_container import ServiceContainer

        self.services = ServiceContainer(settings, bot=self)
        await self.services.initialize()
        logger.info("ServiceContainer initialized")

        try:
            category = await self.services.provisioner.get_category(
                settings.voice_category_id
            )
        except ProvisioningError as e:
            logger.critical(f"Voice category validation failed: {e}")
            raise ConfigError(
                f"VOICE_CATEGORY_ID {settings.voice_category_id} is not a usable category: {e}"
            ) from e
        logger.info(f"Voice category found: {category.name}")

        from services.webhook_api import WebhookAPIServer

        self.webhook_api = WebhookAPIServer(self.services, settings)
        await self.webhook_api.start()

        self.services.sweeper.start()

        for ext in initial_extensions:
            try:
                await self.load_extension(ext)
                logger.info(f"Loaded extension: {ext}")
            except Exception as e:
                logger.exception(f"Failed to load extension {ext}", exc_info=e)

        # Sync the command tree after loading all cogs
        try:
            await self.tree.sync()
            logger.info("All commands synced globally.")
        except Exception as e:
            logger.exception("Failed to sync commands", exc_info=e)

    async def on_ready(self) -> None:
        """Called when the bot is ready."""
        if not self.user:
            logger.warning("Bot user is not initialized")
            return
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info("Bot is ready and online!")

        guild = self.get_guild(self.services.settings.guild_id) if self.services else None
        if guild is not None:
            await self.check_bot_permissions(guild)

    async def check_bot_permissions(self, guild: discord.Guild) -> None:
        """Verify required guild-level permissions and log any missing ones."""
        required_permissions = [
            "manage_channels",
            "manage_roles",
            "view_channel",
            "connect",
            "move_members",
        ]

        if not guild or not guild.me:
            logger.warning(
                "Bot permissions cannot be checked because the bot is not in the guild or the guild is None."
            )
            return

        bot_member = guild.me
        if missing_permissions := [
            perm
            for perm in required_permissions
            if not getattr(bot_member.guild_permissions, perm, False)
        ]:
            logger.warning(
                f"Missing permissions in guild '{guild.name}': {', '.join(missing_permissions)}"
            )
        else:
            logger.info(
                f"All required permissions are present in guild '{guild.name}'."
            )

    async def close(self) -> None:
        """
        Closes the bot and cleans up all resources.
        """
        logger.info("Shutting down the bot.")

        if self.webhook_api:
            await self.webhook_api.stop()

        if self.services:
            try:
                await self.services.cleanup()
            except Exception as e:
                logger.exception("Error cleaning up services", exc_info=e)

        await super().close()

        logger.info("Bot has been shut down.")


bot = MatchBot(command_prefix=commands.when_mentioned, intents=intents)

# Only auto-run if not in explicit dry-run context (TESTBOT_DRY_RUN)
if os.getenv("TESTBOT_DRY_RUN") != "1":
    bot.run(TOKEN)
