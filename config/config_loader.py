# Config/config_loader.py

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

import yaml

from utils.errors import ConfigError


def _get_project_root() -> Path:
    """Derive project root from this file's location: config/config_loader.py -> project root."""
    return Path(__file__).resolve().parent.parent


class ConfigLoader:
    """
    Singleton class to load and provide access to configuration data.

    Observability:
        - Logs INFO on successful config load with path
        - Logs WARNING on missing config file (degraded mode)
        - Logs ERROR on YAML parse errors
        - Tracks config_status for health reporting
    """

    _config: ClassVar[dict[str, Any]] = {}
    _config_status: ClassVar[str] = "not_loaded"  # "ok", "degraded", "error"
    _config_path: ClassVar[str | None] = None

    @classmethod
    def load_config(cls, config_path: str | None = None) -> dict[str, Any]:
        """Load the configuration from a YAML file if not already loaded.

        Args:
            config_path: Path to the configuration file. If not provided,
                uses CONFIG_PATH env var or defaults to project_root/config/config.yaml.

        Returns:
            Dict[str, Any]: Loaded configuration dictionary.
        """
        if not cls._config:
            # Resolve config path with priority: explicit arg > env var > default
            if config_path is None:
                config_path = os.environ.get("CONFIG_PATH")
                if config_path:
                    logging.info(
                        "Config path overridden via CONFIG_PATH env: %s", config_path
                    )

            if config_path is None:
                config_path = str(_get_project_root() / "config" / "config.yaml")

            cls._config_path = config_path

            try:
                with Path(config_path).open(encoding="utf-8") as file:
                    cls._config = yaml.safe_load(file) or {}

                if not isinstance(cls._config, dict):
                    logging.warning(
                        "Configuration file didn't contain a mapping; "
                        "using empty config."
                    )
                    cls._config = {}
                    cls._config_status = "degraded"
                else:
                    cls._config_status = "ok"
                    logging.info(
                        "Configuration loaded successfully from %s", config_path
                    )

                cls._validate_logging_level()

            except FileNotFoundError:
                logging.warning(
                    "Configuration file not found at path: %s; "
                    "using empty/default config (degraded mode).",
                    config_path,
                )
                cls._config = {}
                cls._config_status = "degraded"
            except yaml.YAMLError as e:
                logging.exception(
                    "Error parsing configuration YAML at %s: %s; "
                    "using empty/default config.",
                    config_path,
                    e,
                )
                cls._config = {}
                cls._config_status = "error"
            except UnicodeDecodeError as e:
                logging.exception(
                    "Encoding error reading configuration at %s: %s; "
                    "using empty/default config.",
                    config_path,
                    e,
                )
                cls._config = {}
                cls._config_status = "error"
        return cls._config

    @classmethod
    def get_config_status(cls) -> dict[str, Any]:
        """Return config health status for observability endpoints."""
        return {
            "config_status": cls._config_status,
            "config_path": cls._config_path,
            "config_loaded": bool(cls._config),
        }

    @classmethod
    def _validate_logging_level(cls) -> None:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        logging_config = cls._config.get("logging", {}) or {}
        level = str(logging_config.get("level", "INFO")).upper()
        if level not in valid_levels:
            logging.warning(
                f"Invalid logging level '{level}' in config. Defaulting to 'INFO'."
            )
            logging_cfg = cls._config.setdefault("logging", {})
            logging_cfg["level"] = "INFO"

    @classmethod
    def reset(cls) -> None:
        """Reset the config loader state (useful for testing)."""
        cls._config = {}
        cls._config_status = "not_loaded"
        cls._config_path = None


# ---------------------------------------------------------------------------
# Match settings (YAML sections merged with environment overrides)
# ---------------------------------------------------------------------------

DEFAULT_SWEEP_INTERVAL_SECONDS = 300
DEFAULT_CHANNEL_LIFETIME_MINUTES = 120
DEFAULT_EMPTY_CHANNEL_GRACE_SECONDS = 60
DEFAULT_WEBHOOK_PORT = 3001
DEFAULT_CHANNEL_NAME_TEMPLATE = "Partida #{match_id} | {team_label}"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class MatchSettings:
    """Resolved settings for the match channel lifecycle and its webhook."""

    guild_id: int
    voice_category_id: int
    webhook_secret: str
    webhook_host: str = "0.0.0.0"  # noqa: S104
    webhook_port: int = DEFAULT_WEBHOOK_PORT
    store_backend: str = "json"
    store_path: str = "match_channels.json"
    db_path: str = "match_channels.db"
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS
    channel_lifetime_minutes: int = DEFAULT_CHANNEL_LIFETIME_MINUTES
    apply_default_lifetime: bool = False
    auto_delete_on_empty: bool = False
    empty_channel_grace_seconds: int = DEFAULT_EMPTY_CHANNEL_GRACE_SECONDS
    channel_name_template: str = DEFAULT_CHANNEL_NAME_TEMPLATE
    team_a_label: str = "Time A"
    team_b_label: str = "Time B"
    hmac_tolerance_seconds: int = 300


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _parse_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid integer for {key}: {value!r}") from e


def load_match_settings(
    config: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> MatchSettings:
    """
    Build MatchSettings from the YAML config and environment variables.

    Environment variables win over YAML values. Every missing required value
    is reported in a single ConfigError.

    Args:
        config: Parsed YAML config (defaults to ConfigLoader.load_config()).
        environ: Environment mapping (defaults to os.environ).

    Raises:
        ConfigError: If required values are missing or malformed.
    """
    if config is None:
        config = ConfigLoader.load_config()
    if environ is None:
        environ = dict(os.environ)

    matches_cfg = config.get("matches", {}) or {}
    webhook_cfg = config.get("webhook", {}) or {}
    discord_cfg = config.get("discord", {}) or {}

    raw = {
        "guild_id": environ.get("GUILD_ID") or discord_cfg.get("guild_id"),
        "voice_category_id": environ.get("VOICE_CATEGORY_ID")
        or discord_cfg.get("voice_category_id"),
        "webhook_secret": environ.get("WEBHOOK_SECRET") or webhook_cfg.get("secret"),
    }
    missing = [key for key, value in raw.items() if value in (None, "")]
    if missing:
        env_names = {
            "guild_id": "GUILD_ID",
            "voice_category_id": "VOICE_CATEGORY_ID",
            "webhook_secret": "WEBHOOK_SECRET",
        }
        raise ConfigError(
            "Missing required configuration: "
            + ", ".join(env_names[key] for key in missing)
        )

    port = (
        environ.get("WEBHOOK_PORT")
        or environ.get("PORT")
        or webhook_cfg.get("port", DEFAULT_WEBHOOK_PORT)
    )
    lifetime = environ.get("CHANNEL_LIFETIME_MINUTES") or matches_cfg.get(
        "channel_lifetime_minutes", DEFAULT_CHANNEL_LIFETIME_MINUTES
    )
    auto_delete = environ.get("AUTO_DELETE_ON_EMPTY")
    if auto_delete is None:
        auto_delete = matches_cfg.get("auto_delete_on_empty", False)

    store_backend = str(matches_cfg.get("store_backend", "json")).lower()
    if store_backend not in {"json", "sqlite"}:
        raise ConfigError(
            f"matches.store_backend must be 'json' or 'sqlite', got {store_backend!r}"
        )

    sweep_interval = _parse_int(
        matches_cfg.get("sweep_interval_seconds", DEFAULT_SWEEP_INTERVAL_SECONDS),
        "matches.sweep_interval_seconds",
    )
    if sweep_interval <= 0:
        raise ConfigError("matches.sweep_interval_seconds must be positive")

    return MatchSettings(
        guild_id=_parse_int(raw["guild_id"], "GUILD_ID"),
        voice_category_id=_parse_int(raw["voice_category_id"], "VOICE_CATEGORY_ID"),
        webhook_secret=str(raw["webhook_secret"]),
        webhook_host=environ.get("WEBHOOK_HOST")
        or webhook_cfg.get("host", "0.0.0.0"),  # noqa: S104
        webhook_port=_parse_int(port, "WEBHOOK_PORT"),
        store_backend=store_backend,
        store_path=str(matches_cfg.get("store_path", "match_channels.json")),
        db_path=str(matches_cfg.get("db_path", "match_channels.db")),
        sweep_interval_seconds=sweep_interval,
        channel_lifetime_minutes=_parse_int(lifetime, "CHANNEL_LIFETIME_MINUTES"),
        apply_default_lifetime=_parse_bool(
            matches_cfg.get("apply_default_lifetime", False)
        ),
        auto_delete_on_empty=_parse_bool(auto_delete),
        empty_channel_grace_seconds=_parse_int(
            matches_cfg.get(
                "empty_channel_grace_seconds", DEFAULT_EMPTY_CHANNEL_GRACE_SECONDS
            ),
            "matches.empty_channel_grace_seconds",
        ),
        channel_name_template=str(
            matches_cfg.get("channel_name_template", DEFAULT_CHANNEL_NAME_TEMPLATE)
        ),
        team_a_label=str(matches_cfg.get("team_a_label", "Time A")),
        team_b_label=str(matches_cfg.get("team_b_label", "Time B")),
        hmac_tolerance_seconds=_parse_int(
            webhook_cfg.get("hmac_tolerance_seconds", 300),
            "webhook.hmac_tolerance_seconds",
        ),
    )
