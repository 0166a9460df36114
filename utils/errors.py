"""
Custom exception classes for the match bot.

These provide a hierarchy of typed exceptions for better error handling.
"""


class BotError(Exception):
    """Base exception for bot-related errors."""

    pass


class ConfigError(BotError):
    """Exception raised for configuration-related errors."""

    pass


class PersistenceError(BotError):
    """Exception raised when the match store cannot be read or written."""

    pass


# Older name kept for the database layer
DatabaseError = PersistenceError


class ServiceError(BotError):
    """Exception raised for service-related errors."""

    pass


class MatchError(BotError):
    """Base exception for match lifecycle failures surfaced to webhook callers."""

    status_code = 500


class ValidationError(MatchError):
    """Malformed or incomplete match payload. Never retried automatically."""

    status_code = 400


class NotFoundError(MatchError):
    """Teardown requested for a match with no override and no stored record."""

    status_code = 404


class ProvisioningError(MatchError):
    """A remote voice channel create/delete call failed."""

    status_code = 502

    def __init__(self, message: str, channel_id: str | None = None) -> None:
        super().__init__(message)
        self.channel_id = channel_id
