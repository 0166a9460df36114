"""
Utilities Package

Common utilities and helper functions for the match bot.
"""

from .errors import (
    BotError,
    ConfigError,
    NotFoundError,
    PersistenceError,
    ProvisioningError,
    ServiceError,
    ValidationError,
)
from .types import (
    ChannelHandle,
    MatchChannelRecord,
    MatchStatus,
    MemberGrant,
)

__all__ = [
    "BotError",
    "ChannelHandle",
    "ConfigError",
    "MatchChannelRecord",
    "MatchStatus",
    "MemberGrant",
    "NotFoundError",
    "PersistenceError",
    "ProvisioningError",
    "ServiceError",
    "ValidationError",
]
