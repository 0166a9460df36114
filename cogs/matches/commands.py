"""Match command Cog."""

from __future__ import annotations

import contextlib

import discord
from discord import app_commands
from discord.ext import commands

from utils.logging import get_logger

logger = get_logger(__name__)


class MatchCommands(commands.Cog):
    """Expose the /ping slash command."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @app_commands.command(name="ping", description="Check whether the bot is online")
    async def ping(self, interaction: discord.Interaction) -> None:
        """Reply ephemerally with the gateway latency."""
        latency_ms = round(self.bot.latency * 1000) if self.bot.latency else 0
        try:
            await interaction.response.send_message(
                f"🏓 Pong! Bot online ({latency_ms} ms).", ephemeral=True
            )
        except Exception as exc:
            logger.exception("Failed to answer /ping", exc_info=exc)
            if not interaction.response.is_done():
                with contextlib.suppress(Exception):
                    await interaction.response.send_message(
                        "❌ Unable to answer right now.", ephemeral=True
                    )


async def setup(bot: commands.Bot) -> None:
    """Register the Match commands cog."""

    await bot.add_cog(MatchCommands(bot))
