"""
Test Factories Module

Centralized factory functions and fixtures for creating test objects.
Provides DRY utilities for Discord mocks, config fixtures, and match payloads.
"""

from .config_factories import (
    make_config,
    make_environ,
    make_settings,
    temp_config_file,
)
from .discord_factories import (
    FakeBot,
    FakeGuild,
    FakeInteraction,
    FakeMember,
    FakeRole,
    FakeUser,
    FakeVoiceChannel,
    FakeVoiceState,
    make_bot,
    make_category,
    make_guild,
    make_http_exception,
    make_interaction,
    make_member,
    make_typed_channel,
    make_voice_channel,
    make_voice_state,
)
from .match_factories import (
    FakeProvisioner,
    make_create_payload,
    roster_entry,
)

__all__ = [
    "FakeBot",
    "FakeGuild",
    "FakeInteraction",
    "FakeMember",
    "FakeProvisioner",
    "FakeRole",
    "FakeUser",
    "FakeVoiceChannel",
    "FakeVoiceState",
    "make_bot",
    "make_category",
    "make_config",
    "make_create_payload",
    "make_environ",
    "make_guild",
    "make_http_exception",
    "make_interaction",
    "make_member",
    "make_settings",
    "make_typed_channel",
    "make_voice_channel",
    "make_voice_state",
    "roster_entry",
    "temp_config_file",
]
