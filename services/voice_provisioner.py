"""
Voice channel provisioner.

Thin adapter over the Discord API for the remote side effects of the match
lifecycle: creating and deleting voice channels under the match category and
moving members into them. All calls go through helpers.discord_api so they
share the rate limiter and 5xx retry policy.
"""

from collections.abc import Sequence
from typing import Any

import discord

from helpers.discord_api import call_discord
from utils.errors import ProvisioningError
from utils.logging import get_logger
from utils.types import ChannelHandle, MemberGrant

logger = get_logger(__name__)


def build_overwrites(
    guild: discord.Guild, grants: Sequence[MemberGrant]
) -> dict[Any, discord.PermissionOverwrite]:
    """
    Build a closed-by-default overwrite map for a rostered channel.

    @everyone may see the channel but not connect or speak; each grant opens
    it for one member, and the priority grant adds priority speaker. The bot
    itself keeps connect/move rights so it can move players in.
    """
    overwrites: dict[Any, discord.PermissionOverwrite] = {
        guild.default_role: discord.PermissionOverwrite(connect=False, speak=False),
    }
    if guild.me is not None:
        overwrites[guild.me] = discord.PermissionOverwrite(
            view_channel=True,
            connect=True,
            speak=True,
            move_members=True,
            manage_channels=True,
        )
    for grant in grants:
        overwrites[discord.Object(id=grant.member_id)] = discord.PermissionOverwrite(
            view_channel=True,
            connect=grant.can_connect,
            speak=grant.can_speak,
            priority_speaker=True if grant.is_priority else None,
        )
    return overwrites


class VoiceProvisioner:
    """Creates and deletes match voice channels in one guild."""

    def __init__(
        self, bot: discord.Client, guild_id: int, category_id: int | None = None
    ) -> None:
        self.bot = bot
        self.guild_id = guild_id
        self.category_id = category_id

    async def _get_guild(self) -> discord.Guild:
        guild = self.bot.get_guild(self.guild_id)
        if guild is not None:
            return guild
        try:
            return await call_discord(
                lambda: self.bot.fetch_guild(self.guild_id),
                description=f"fetch guild {self.guild_id}",
            )
        except discord.HTTPException as e:
            raise ProvisioningError(f"Guild {self.guild_id} unavailable: {e}") from e

    async def _get_channel(
        self, guild: discord.Guild, channel_id: int
    ) -> discord.abc.GuildChannel:
        channel = guild.get_channel(channel_id)
        if channel is not None:
            return channel
        return await call_discord(
            lambda: guild.fetch_channel(channel_id),
            description=f"fetch channel {channel_id}",
        )

    async def get_category(self, parent_group_id: int) -> discord.CategoryChannel:
        """Resolve the parent category, raising ProvisioningError if it is not one."""
        guild = await self._get_guild()
        try:
            category = await self._get_channel(guild, int(parent_group_id))
        except discord.HTTPException as e:
            raise ProvisioningError(
                f"Voice category {parent_group_id} not found: {e}"
            ) from e
        if not isinstance(category, discord.CategoryChannel):
            raise ProvisioningError(
                f"Channel {parent_group_id} is not a category channel"
            )
        return category

    async def create_voice_channel(
        self,
        name: str,
        parent_group_id: int,
        member_grants: Sequence[MemberGrant] = (),
    ) -> ChannelHandle:
        """
        Create a voice channel under the given category.

        With member grants the channel is closed to everyone else; without
        them it inherits the category's (open) permissions.

        Raises:
            ProvisioningError: If the category cannot be resolved or Discord
                rejects the creation.
        """
        guild = await self._get_guild()
        category = await self.get_category(parent_group_id)

        kwargs: dict[str, Any] = {"name": name, "category": category}
        if member_grants:
            kwargs["overwrites"] = build_overwrites(guild, member_grants)

        try:
            channel = await call_discord(
                lambda: guild.create_voice_channel(**kwargs),
                description=f"create voice channel '{name}'",
            )
        except discord.HTTPException as e:
            raise ProvisioningError(f"Failed to create channel '{name}': {e}") from e

        logger.info(
            f"Created voice channel '{channel.name}' ({channel.id})",
            extra={"channel_id": channel.id},
        )
        return ChannelHandle(id=str(channel.id), name=channel.name)

    def _is_deletable(self, channel: discord.abc.GuildChannel) -> bool:
        if not isinstance(channel, discord.VoiceChannel):
            logger.warning(
                f"Refusing to delete channel {channel.id}: not a voice channel",
                extra={"channel_id": channel.id},
            )
            return False
        if self.category_id is not None and channel.category_id != self.category_id:
            logger.warning(
                f"Refusing to delete channel {channel.id}: outside the match category",
                extra={"channel_id": channel.id},
            )
            return False
        return True

    async def delete_voice_channel(
        self, channel_id: Any, reason: str = "Match finished"
    ) -> bool:
        """
        Delete a voice channel by id.

        Only voice channels are deleted, and when the provisioner is bound to a
        category only channels inside it; anything else is logged and skipped.

        Returns:
            True if the channel was deleted, False if it was already gone
            or is not a match voice channel.

        Raises:
            ProvisioningError: For any failure other than the channel missing.
        """
        try:
            numeric_id = int(str(channel_id).strip())
        except (TypeError, ValueError):
            logger.warning(
                f"Invalid channel id {channel_id!r}; nothing to delete",
                extra={"channel_id": channel_id},
            )
            return False

        guild = await self._get_guild()
        try:
            channel = await self._get_channel(guild, numeric_id)
            if not self._is_deletable(channel):
                return False
            await call_discord(
                lambda: channel.delete(reason=reason),
                description=f"delete channel {numeric_id}",
            )
        except discord.NotFound:
            logger.warning(
                f"Channel {numeric_id} not found. It may have already been deleted.",
                extra={"channel_id": numeric_id},
            )
            return False
        except discord.HTTPException as e:
            raise ProvisioningError(
                f"Failed to delete channel {numeric_id}: {e}", channel_id=str(numeric_id)
            ) from e

        logger.info(
            f"Deleted voice channel {numeric_id}", extra={"channel_id": numeric_id}
        )
        return True

    async def fetch_member(self, member_id: int) -> discord.Member | None:
        """Return a guild member, preferring the cache (which carries voice state)."""
        guild = await self._get_guild()
        member = guild.get_member(member_id)
        if member is not None:
            return member
        try:
            return await call_discord(
                lambda: guild.fetch_member(member_id),
                description=f"fetch member {member_id}",
            )
        except discord.NotFound:
            return None

    async def move_member(self, member: discord.Member, channel_id: Any) -> None:
        """Move a connected member into the given voice channel."""
        guild = await self._get_guild()
        channel = await self._get_channel(guild, int(channel_id))
        await call_discord(
            lambda: member.move_to(channel, reason="Match channel assignment"),
            description=f"move member {member.id}",
        )
