"""
Match Cog Tests

/ping reply and the empty-channel auto-delete listener.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from cogs.matches.commands import MatchCommands
from cogs.matches.events import MatchEvents
from tests.factories import (
    make_bot,
    make_guild,
    make_interaction,
    make_member,
    make_settings,
    make_voice_channel,
    make_voice_state,
)


class TestPingCommand:
    @pytest.mark.asyncio
    async def test_ping_replies_ephemerally(self):
        bot = make_bot()
        cog = MatchCommands(bot)
        interaction = make_interaction()

        await cog.ping.callback(cog, interaction)

        message = interaction.response._messages[0]
        assert message["ephemeral"] is True
        assert "Pong" in message["content"]
        assert "50 ms" in message["content"]


def _events_cog(guild, match_id="42", **settings_overrides):
    bot = make_bot(guilds=[guild])
    settings = make_settings(
        **{
            "guild_id": guild.id,
            "auto_delete_on_empty": True,
            "empty_channel_grace_seconds": 0,
            **settings_overrides,
        }
    )
    matches = SimpleNamespace(find_match_for_channel=AsyncMock(return_value=match_id))
    provisioner = SimpleNamespace(delete_voice_channel=AsyncMock(return_value=True))
    bot.services = SimpleNamespace(settings=settings, matches=matches, provisioner=provisioner)
    return MatchEvents(bot), bot.services


class TestEmptyChannelCleanup:
    @pytest.mark.asyncio
    async def test_last_member_leaving_deletes_channel(self):
        guild = make_guild()
        channel = make_voice_channel(321, "Partida #42 | Time A", guild=guild)
        guild.channels.append(channel)
        member = make_member(111, guild=guild)
        cog, services = _events_cog(guild)

        await cog.on_voice_state_update(member, make_voice_state(channel), make_voice_state(None))
        await cog._pending[321]

        services.provisioner.delete_voice_channel.assert_awaited_once()
        assert services.provisioner.delete_voice_channel.await_args.args[0] == 321
        assert cog._pending == {}

    @pytest.mark.asyncio
    async def test_channel_with_members_is_kept(self):
        guild = make_guild()
        other = make_member(222, guild=guild)
        channel = make_voice_channel(321, guild=guild, members=[other])
        guild.channels.append(channel)
        cog, services = _events_cog(guild)

        await cog.on_voice_state_update(
            make_member(111, guild=guild), make_voice_state(channel), make_voice_state(None)
        )

        assert cog._pending == {}
        services.matches.find_match_for_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_match_channel_is_ignored(self):
        guild = make_guild()
        channel = make_voice_channel(321, guild=guild)
        guild.channels.append(channel)
        cog, services = _events_cog(guild, match_id=None)

        await cog.on_voice_state_update(
            make_member(111, guild=guild), make_voice_state(channel), make_voice_state(None)
        )

        assert cog._pending == {}
        services.provisioner.delete_voice_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        guild = make_guild()
        channel = make_voice_channel(321, guild=guild)
        cog, services = _events_cog(guild)
        services.settings = make_settings(guild_id=guild.id)

        await cog.on_voice_state_update(
            make_member(111, guild=guild), make_voice_state(channel), make_voice_state(None)
        )

        services.matches.find_match_for_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejoin_during_grace_cancels_deletion(self):
        guild = make_guild()
        channel = make_voice_channel(321, guild=guild)
        guild.channels.append(channel)
        member = make_member(111, guild=guild)
        cog, services = _events_cog(guild, empty_channel_grace_seconds=60)

        await cog.on_voice_state_update(member, make_voice_state(channel), make_voice_state(None))
        pending = cog._pending[321]
        await cog.on_voice_state_update(member, make_voice_state(None), make_voice_state(channel))

        assert 321 not in cog._pending
        with pytest.raises(asyncio.CancelledError):
            await pending
        assert pending.cancelled()
        services.provisioner.delete_voice_channel.assert_not_awaited()
