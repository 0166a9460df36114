"""
Match lifecycle service.

Orchestrates the channel pair of every match: provisioning both team channels,
persisting the mapping, moving rostered players in, and tearing everything
down again when the site reports the match finished or the record expires.
"""

import asyncio
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from config.config_loader import MatchSettings
from utils.errors import PersistenceError, ProvisioningError
from utils.types import (
    ChannelHandle,
    ChannelPair,
    CreationResult,
    MemberGrant,
    TeardownResult,
)

from .base import BaseService
from .match_store import MatchStore, normalize_match_id, now_ms
from .payloads import (
    ChannelOverride,
    CreateRequest,
    MinimalMatch,
    RosteredMatch,
    RosterMember,
    parse_create_request,
)
from .voice_provisioner import VoiceProvisioner

NOT_FOUND_ERROR = "match channels not found"
MOVE_CONCURRENCY = 5


def _coerce_override(value: Any) -> ChannelOverride | None:
    if value is None or isinstance(value, ChannelOverride):
        return value
    if isinstance(value, ChannelPair):
        return ChannelOverride(team_a=value.team_a, team_b=value.team_b)
    if isinstance(value, Mapping):
        team_a = value.get("team_a")
        team_b = value.get("team_b")
        return ChannelOverride(
            team_a=str(team_a) if team_a not in (None, "") else None,
            team_b=str(team_b) if team_b not in (None, "") else None,
        )
    raise TypeError(f"Unsupported channel override: {type(value).__name__}")


class MatchLifecycleManager(BaseService):
    """
    Creates and tears down the voice channel pair of each match.

    Holds no cached records between calls; every operation re-reads the
    store. Calls for the same match id are serialized by a per-match lock so
    a create racing a teardown cannot interleave inside this process.
    """

    def __init__(
        self,
        store: MatchStore,
        provisioner: VoiceProvisioner,
        settings: MatchSettings,
    ) -> None:
        super().__init__("matches")
        self.store = store
        self.provisioner = provisioner
        self.settings = settings
        self._match_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def _initialize_impl(self) -> None:
        await self.store.initialize()

    @asynccontextmanager
    async def _match_lock(self, match_id: str) -> AsyncIterator[None]:
        lock = self._match_locks.setdefault(match_id, asyncio.Lock())
        self._lock_users[match_id] = self._lock_users.get(match_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[match_id] -= 1
            if not self._lock_users[match_id]:
                del self._lock_users[match_id]
                del self._match_locks[match_id]

    def channel_name(self, match_id: str, team_label: str) -> str:
        return self.settings.channel_name_template.format(
            match_id=match_id, team_label=team_label
        )

    def _resolve_expiry(self, expires_at: int | None) -> int | None:
        if expires_at is not None:
            return expires_at
        if self.settings.apply_default_lifetime:
            return now_ms() + self.settings.channel_lifetime_minutes * 60 * 1000
        return None

    @staticmethod
    def _grants_for(
        roster: Sequence[RosterMember], captain_id: int | None
    ) -> list[MemberGrant]:
        return [
            MemberGrant(
                member_id=member.member_id,
                is_priority=captain_id is not None and member.member_id == captain_id,
            )
            for member in roster
        ]

    async def create(self, payload: CreateRequest | Mapping[str, Any]) -> CreationResult:
        """
        Provision both team channels for a match and persist the mapping.

        Raises:
            ValidationError: Missing match id or roster members without
                a discord_id. Raised before any channel is created.
            ProvisioningError: Either channel could not be created. Nothing is
                persisted; a first channel that was created stays behind.
            PersistenceError: The mapping could not be written.
        """
        self._ensure_initialized()
        request = (
            payload
            if isinstance(payload, (MinimalMatch, RosteredMatch))
            else parse_create_request(payload)
        )
        match_id = request.match_id
        name_a = self.channel_name(match_id, self.settings.team_a_label)
        name_b = self.channel_name(match_id, self.settings.team_b_label)

        async with self._match_lock(match_id):
            existing = await self.store.get_active_match(match_id)
            if existing is not None:
                self.logger.info(
                    f"Match #{match_id} already has active channels; reusing them",
                    extra={"match_id": match_id},
                )
                return CreationResult(
                    match_id=match_id,
                    team_a=ChannelHandle(existing.team_a_channel_id, name_a),
                    team_b=ChannelHandle(existing.team_b_channel_id, name_b),
                    reused=True,
                )

            grants_a: list[MemberGrant] = []
            grants_b: list[MemberGrant] = []
            if isinstance(request, RosteredMatch):
                grants_a = self._grants_for(request.team_a, request.captain_a_id)
                grants_b = self._grants_for(request.team_b, request.captain_b_id)

            self.logger.info(
                f"Creating channels for Match #{match_id}", extra={"match_id": match_id}
            )
            category_id = self.settings.voice_category_id
            channel_a = await self.provisioner.create_voice_channel(
                name_a, category_id, grants_a
            )
            try:
                channel_b = await self.provisioner.create_voice_channel(
                    name_b, category_id, grants_b
                )
            except ProvisioningError:
                self.logger.error(
                    f"Team B channel failed for Match #{match_id}; "
                    f"team A channel {channel_a.id} left orphaned",
                    extra={"match_id": match_id, "channel_id": channel_a.id},
                )
                raise

            expires_at = self._resolve_expiry(request.expires_at)
            try:
                await self.store.upsert(match_id, channel_a.id, channel_b.id, expires_at)
            except PersistenceError:
                self.logger.critical(
                    f"Could not persist Match #{match_id}; channels "
                    f"{channel_a.id} and {channel_b.id} are untracked",
                    extra={"match_id": match_id},
                )
                raise

            move_failures: list[str] = []
            if isinstance(request, RosteredMatch):
                move_failures = await self._move_rosters(request, channel_a, channel_b)

        self.logger.info(
            f"Channels created for Match #{match_id}: "
            f"{channel_a.name} ({channel_a.id}), {channel_b.name} ({channel_b.id})",
            extra={"match_id": match_id},
        )
        return CreationResult(
            match_id=match_id,
            team_a=channel_a,
            team_b=channel_b,
            move_failures=move_failures,
        )

    async def _move_rosters(
        self,
        request: RosteredMatch,
        channel_a: ChannelHandle,
        channel_b: ChannelHandle,
    ) -> list[str]:
        """Move connected players into their team channel; never raises."""
        semaphore = asyncio.Semaphore(MOVE_CONCURRENCY)

        async def _move_one(member: RosterMember, channel: ChannelHandle) -> str | None:
            async with semaphore:
                try:
                    discord_member = await self.provisioner.fetch_member(
                        member.member_id
                    )
                    if discord_member is None:
                        return f"{member.nickname}: not in guild"
                    voice = getattr(discord_member, "voice", None)
                    if voice is None or voice.channel is None:
                        return None
                    if str(voice.channel.id) == channel.id:
                        return None
                    await self.provisioner.move_member(discord_member, channel.id)
                    return None
                except Exception as e:
                    return f"{member.nickname}: {e}"

        assignments = [(m, channel_a) for m in request.team_a] + [
            (m, channel_b) for m in request.team_b
        ]
        results = await asyncio.gather(
            *(_move_one(member, channel) for member, channel in assignments)
        )
        failures = [result for result in results if result]
        for failure in failures:
            self.logger.warning(
                f"Could not move player for Match #{request.match_id}: {failure}",
                extra={"match_id": request.match_id},
            )
        return failures

    async def teardown(
        self, match_id: Any, channel_override: Any = None
    ) -> TeardownResult:
        """
        Delete both team channels of a match and mark it DELETED.

        A complete override (both ids) wins over the stored record. Each
        channel deletion is attempted independently and its failure only
        logged; the store transition always runs afterwards.

        Returns:
            success=True once the store mark completed (or the match was
            already torn down), success=False only when there is nothing to
            delete.
        """
        self._ensure_initialized()
        key = normalize_match_id(match_id)
        override = _coerce_override(channel_override)

        async with self._match_lock(key):
            if override is not None and override.is_complete:
                pair = ChannelPair(override.team_a, override.team_b)
                self.logger.info(
                    f"Deleting channels for Match #{key} from caller-supplied ids",
                    extra={"match_id": key},
                )
            else:
                if override is not None:
                    self.logger.warning(
                        f"Ignoring partial channel override for Match #{key}",
                        extra={"match_id": key},
                    )
                record = await self.store.get_match(key)
                if record is None:
                    self.logger.warning(
                        f"Match #{key} not found in store", extra={"match_id": key}
                    )
                    return TeardownResult(success=False, error=NOT_FOUND_ERROR)
                if not record.is_active:
                    self.logger.info(
                        f"Match #{key} already torn down", extra={"match_id": key}
                    )
                    return TeardownResult(success=True, match_id=key)
                pair = ChannelPair(record.team_a_channel_id, record.team_b_channel_id)
                self.logger.info(
                    f"Deleting channels for Match #{key}", extra={"match_id": key}
                )

            failed_sides = []
            for side, channel_id in (("team_a", pair.team_a), ("team_b", pair.team_b)):
                try:
                    await self.provisioner.delete_voice_channel(
                        channel_id, reason=f"Match #{key} finished"
                    )
                except Exception as e:
                    failed_sides.append(side)
                    self.logger.warning(
                        f"Error deleting {side} channel {channel_id} for Match #{key}: {e}",
                        extra={"match_id": key, "channel_id": channel_id, "side": side},
                    )

            try:
                await self.store.mark_deleted(key)
            except PersistenceError as e:
                self.logger.critical(
                    f"Failed to mark Match #{key} as deleted; record may stay ACTIVE "
                    f"while its channels are gone: {e}",
                    extra={"match_id": key},
                )

        self.logger.info(f"Channels for Match #{key} torn down", extra={"match_id": key})
        return TeardownResult(success=True, match_id=key, failed_sides=failed_sides)

    async def find_match_for_channel(self, channel_id: Any) -> str | None:
        """Return the id of the ACTIVE match owning a channel, if any."""
        target = str(channel_id)
        for record in await self.store.list_active_matches():
            if target in (record.team_a_channel_id, record.team_b_channel_id):
                return record.match_id
        return None

    async def health_check(self) -> dict[str, Any]:
        base_health = await super().health_check()
        return {
            **base_health,
            "store": await self.store.health_check(),
            "locked_matches": sum(
                1 for lock in self._match_locks.values() if lock.locked()
            ),
        }
