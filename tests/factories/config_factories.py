"""
Config Factories

Provides factory functions for creating test configuration objects and files.
Use these to test config loading, validation, and defaults.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from config.config_loader import MatchSettings

if TYPE_CHECKING:
    from collections.abc import Generator

TEST_GUILD_ID = 987654321
TEST_CATEGORY_ID = 555000111
TEST_WEBHOOK_SECRET = "test-secret"  # noqa: S105


def make_config(
    logging_level: str = "INFO",
    webhook: dict[str, Any] | None = None,
    matches: dict[str, Any] | None = None,
    discord: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a configuration dictionary for testing.

    Args:
        logging_level: Logging level string
        webhook: Webhook section (host, port, secret, hmac tolerance)
        matches: Matches section (store backend, sweep interval, naming)
        discord: Discord section (guild_id, voice_category_id)
        extra: Additional top-level keys to merge

    Returns:
        Complete configuration dictionary.

    Examples:
        # Basic config
        config = make_config()

        # Config selecting the SQLite store
        config = make_config(matches={"store_backend": "sqlite"})
    """
    config: dict[str, Any] = {
        "logging": {"level": logging_level},
        "webhook": webhook
        if webhook is not None
        else {"host": "127.0.0.1", "port": 3001, "hmac_tolerance_seconds": 300},
        "matches": matches
        if matches is not None
        else {
            "store_backend": "json",
            "sweep_interval_seconds": 300,
            "channel_lifetime_minutes": 120,
        },
    }
    if discord is not None:
        config["discord"] = discord
    if extra:
        config.update(extra)
    return config


def make_environ(**overrides: str) -> dict[str, str]:
    """Create the required environment variables for load_match_settings."""
    environ = {
        "GUILD_ID": str(TEST_GUILD_ID),
        "VOICE_CATEGORY_ID": str(TEST_CATEGORY_ID),
        "WEBHOOK_SECRET": TEST_WEBHOOK_SECRET,
    }
    environ.update(overrides)
    return environ


def make_settings(**overrides: Any) -> MatchSettings:
    """Create resolved MatchSettings with test ids; keyword args override fields."""
    values: dict[str, Any] = {
        "guild_id": TEST_GUILD_ID,
        "voice_category_id": TEST_CATEGORY_ID,
        "webhook_secret": TEST_WEBHOOK_SECRET,
        "webhook_host": "127.0.0.1",
    }
    values.update(overrides)
    return MatchSettings(**values)


@contextlib.contextmanager
def temp_config_file(
    config: dict[str, Any] | None = None,
    content: str | None = None,
) -> Generator[str, None, None]:
    """
    Create a temporary config file for testing.

    Args:
        config: Configuration dictionary to write as YAML
        content: Raw string content (overrides config dict)

    Yields:
        Path to the temporary config file.
    """
    fd, path = tempfile.mkstemp(suffix=".yaml")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            if content is not None:
                f.write(content)
            elif config is not None:
                yaml.safe_dump(config, f)
            else:
                yaml.safe_dump(make_config(), f)
        yield path
    finally:
        with contextlib.suppress(Exception):
            Path(path).unlink()
