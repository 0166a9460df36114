"""
Type definitions and common data structures for the match bot.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, NamedTuple


class MatchStatus(str, Enum):
    """Lifecycle status of a match channel pair."""

    ACTIVE = "ACTIVE"
    DELETED = "DELETED"


@dataclass
class MatchChannelRecord:
    """Persisted mapping from a match to its voice channel pair.

    Ids are stored as strings: match ids are normalized at every store boundary
    and channel ids are Discord snowflakes, which the site may send as either
    numbers or strings.
    """

    match_id: str
    team_a_channel_id: str
    team_b_channel_id: str
    created_at: int  # ms since epoch
    expires_at: int | None = None  # ms since epoch, None never expires
    status: MatchStatus = MatchStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is MatchStatus.ACTIVE

    def is_expired(self, now_ms: int) -> bool:
        return (
            self.is_active
            and self.expires_at is not None
            and self.expires_at < now_ms
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchChannelRecord":
        expires_at = data.get("expires_at")
        return cls(
            match_id=str(data["match_id"]),
            team_a_channel_id=str(data["team_a_channel_id"]),
            team_b_channel_id=str(data["team_b_channel_id"]),
            created_at=int(data.get("created_at") or 0),
            expires_at=int(expires_at) if expires_at is not None else None,
            status=MatchStatus(data.get("status", MatchStatus.ACTIVE.value)),
        )


@dataclass(frozen=True)
class MemberGrant:
    """Per-member access override applied to a provisioned voice channel."""

    member_id: int
    can_connect: bool = True
    can_speak: bool = True
    is_priority: bool = False


class ChannelHandle(NamedTuple):
    """Minimal view of a provisioned channel returned by the provisioner."""

    id: str
    name: str


class ChannelPair(NamedTuple):
    """Channel ids for both teams of one match."""

    team_a: str
    team_b: str


@dataclass
class CreationResult:
    """Result of creating the channel pair for a match."""

    match_id: str
    team_a: ChannelHandle
    team_b: ChannelHandle
    success: bool = True
    reused: bool = False
    move_failures: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "match_id": self.match_id,
            "channels": {
                "team_a": {"id": self.team_a.id, "name": self.team_a.name},
                "team_b": {"id": self.team_b.id, "name": self.team_b.name},
            },
        }


@dataclass
class TeardownResult:
    """Result of tearing down the channel pair for a match."""

    success: bool
    match_id: str | None = None
    error: str | None = None
    failed_sides: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "match_id": self.match_id}
        return {"success": False, "error": self.error}


class SweeperState(str, Enum):
    """Expiry sweeper state machine."""

    STOPPED = "STOPPED"
    RUNNING = "RUNNING"

