"""
Match Factories

Fake voice provisioner and webhook payload builders for lifecycle tests.
"""

from __future__ import annotations

from typing import Any

from utils.errors import ProvisioningError
from utils.types import ChannelHandle, MemberGrant


class FakeProvisioner:
    """
    In-memory stand-in for VoiceProvisioner.

    Records every call; failures are injected per call number (create) or per
    channel id (delete) or per member id (move).
    """

    def __init__(self, members: dict[int, Any] | None = None) -> None:
        self.channels: dict[str, str] = {}
        self.create_calls: list[tuple[str, int, tuple[MemberGrant, ...]]] = []
        self.delete_calls: list[str] = []
        self.moves: list[tuple[int, str]] = []
        self.members: dict[int, Any] = members or {}
        self.fail_create_on: int | None = None
        self.fail_delete: set[str] = set()
        self.fail_move: set[int] = set()
        self._next_id = 700000000000000001

    async def create_voice_channel(
        self,
        name: str,
        parent_group_id: int,
        member_grants: tuple[MemberGrant, ...] | list[MemberGrant] = (),
    ) -> ChannelHandle:
        self.create_calls.append((name, parent_group_id, tuple(member_grants)))
        if self.fail_create_on == len(self.create_calls):
            raise ProvisioningError(f"Failed to create channel '{name}': 50013 Missing Permissions")
        channel_id = str(self._next_id)
        self._next_id += 1
        self.channels[channel_id] = name
        return ChannelHandle(id=channel_id, name=name)

    async def delete_voice_channel(self, channel_id: Any, reason: str = "Match finished") -> bool:
        key = str(channel_id)
        self.delete_calls.append(key)
        if key in self.fail_delete:
            raise ProvisioningError(f"Failed to delete channel {key}", channel_id=key)
        return self.channels.pop(key, None) is not None

    async def fetch_member(self, member_id: int) -> Any:
        return self.members.get(member_id)

    async def move_member(self, member: Any, channel_id: Any) -> None:
        if member.id in self.fail_move:
            raise ProvisioningError(f"Cannot move member {member.id}")
        self.moves.append((member.id, str(channel_id)))

    async def get_category(self, parent_group_id: int) -> Any:
        return None


def roster_entry(player_id: str, nickname: str, discord_id: Any = None) -> dict[str, Any]:
    """Roster entry as the site sends it."""
    entry: dict[str, Any] = {"id": player_id, "nickname": nickname}
    if discord_id is not None:
        entry["discord_id"] = discord_id
    return entry


def make_create_payload(
    match_id: Any = 42,
    team_a: list[dict[str, Any]] | None = None,
    team_b: list[dict[str, Any]] | None = None,
    captain_a: dict[str, Any] | None = None,
    captain_b: dict[str, Any] | None = None,
    expires_at: int | None = None,
    nested: bool = True,
) -> dict[str, Any]:
    """
    Build a create webhook body.

    With nested=True rosters go under ``teams``; otherwise they are sent as
    top-level ``team_a`` / ``team_b``.
    """
    payload: dict[str, Any] = {"match_id": match_id}
    if team_a is not None or team_b is not None:
        rosters = {"team_a": team_a or [], "team_b": team_b or []}
        if nested:
            payload["teams"] = rosters
        else:
            payload.update(rosters)
    if captain_a is not None:
        payload["captain_a"] = captain_a
    if captain_b is not None:
        payload["captain_b"] = captain_b
    if expires_at is not None:
        payload["expires_at"] = expires_at
    return payload
