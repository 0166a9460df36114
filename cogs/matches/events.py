"""
Match Events Cog

Deletes a match voice channel once it has stayed empty for the grace period,
when auto-delete is enabled. The match record itself stays ACTIVE; the later
teardown tolerates the missing channel.
"""

import asyncio
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from utils.logging import get_logger
from utils.tasks import spawn

if TYPE_CHECKING:
    from services.service_container import ServiceContainer

logger = get_logger(__name__)


class MatchEvents(commands.Cog):
    """Handles voice state changes in match channels."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self._pending: dict[int, asyncio.Task[None]] = {}

    @property
    def services(self) -> "ServiceContainer":
        """Get the bot's service container."""
        if not hasattr(self.bot, "services") or self.bot.services is None:
            raise RuntimeError("Bot services not initialized")
        return self.bot.services

    async def cog_unload(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Schedule deletion when the last member leaves a match channel."""
        try:
            settings = self.services.settings
            if not settings.auto_delete_on_empty:
                return
            if member.guild.id != settings.guild_id:
                return

            if after.channel is not None and after.channel.id in self._pending:
                self._pending.pop(after.channel.id).cancel()
                logger.debug(
                    f"Channel {after.channel.id} occupied again; deletion cancelled",
                    extra={"channel_id": after.channel.id},
                )

            channel = before.channel
            if channel is None or channel == after.channel:
                return
            if channel.members or channel.id in self._pending:
                return

            match_id = await self.services.matches.find_match_for_channel(channel.id)
            if match_id is None:
                return

            logger.info(
                f"Match #{match_id} channel {channel.name} is empty; deleting in "
                f"{settings.empty_channel_grace_seconds}s",
                extra={"match_id": match_id, "channel_id": channel.id},
            )
            self._pending[channel.id] = spawn(
                self._delete_if_still_empty(channel, match_id),
                name=f"empty_channel_{channel.id}",
            )

        except Exception as e:
            logger.exception(
                f"Error handling voice state update for {member} "
                f"(before: {before.channel}, after: {after.channel}): {e}"
            )

    async def _delete_if_still_empty(
        self, channel: discord.VoiceChannel, match_id: str
    ) -> None:
        try:
            await asyncio.sleep(self.services.settings.empty_channel_grace_seconds)
            current = channel.guild.get_channel(channel.id)
            if current is None or getattr(current, "members", None):
                return
            await self.services.provisioner.delete_voice_channel(
                channel.id, reason=f"Match #{match_id} channel empty"
            )
        finally:
            if self._pending.get(channel.id) is asyncio.current_task():
                del self._pending[channel.id]


async def setup(bot: commands.Bot) -> None:
    """Set up the Match Events cog."""
    await bot.add_cog(MatchEvents(bot))
