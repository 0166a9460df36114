"""
Match channel store.

Durable mapping from match id to its voice channel pair and status. Two
backends satisfy the same contract: a single JSON document (this module) and
a SQLite table (services.db.match_repository).

Every entry point normalizes the match id with normalize_match_id, so the
site may send ``42`` or ``"42"`` interchangeably without relying on loose
equality anywhere downstream.
"""

import asyncio
import json
import time
from abc import abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any

from helpers.atomic_write import AtomicWriteError, atomic_write_json
from utils.errors import PersistenceError, ValidationError
from utils.types import MatchChannelRecord, MatchStatus

from .base import BaseService


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def normalize_match_id(match_id: Any) -> str:
    """
    Return the canonical string form of a match id.

    Integers and numeric strings collapse to the same value (``5``, ``"5"``,
    ``" 05 "`` and ``5.0`` all become ``"5"``). Other non-empty strings are
    kept verbatim after stripping whitespace.

    Raises:
        ValidationError: For None, booleans, empty strings, non-integral
            floats and any other type.
    """
    if match_id is None or isinstance(match_id, bool):
        raise ValidationError("match_id is required")
    if isinstance(match_id, int):
        return str(match_id)
    if isinstance(match_id, float):
        if not match_id.is_integer():
            raise ValidationError(f"match_id must be an integer, got {match_id!r}")
        return str(int(match_id))
    if isinstance(match_id, str):
        value = match_id.strip()
        if not value:
            raise ValidationError("match_id is required")
        if value.isdigit():
            return str(int(value))
        return value
    raise ValidationError(f"Unsupported match_id type: {type(match_id).__name__}")


class MatchStore(BaseService):
    """Contract shared by every match store backend."""

    @abstractmethod
    async def upsert(
        self,
        match_id: Any,
        team_a_channel_id: Any,
        team_b_channel_id: Any,
        expires_at: int | None = None,
    ) -> MatchChannelRecord:
        """Persist a new ACTIVE record, replacing any record with the same id."""

    @abstractmethod
    async def get_match(self, match_id: Any) -> MatchChannelRecord | None:
        """Return the record for a match regardless of status."""

    async def get_active_match(self, match_id: Any) -> MatchChannelRecord | None:
        """Return the record only while it is ACTIVE."""
        record = await self.get_match(match_id)
        if record is None or not record.is_active:
            return None
        return record

    @abstractmethod
    async def get_expired_active_matches(
        self, now: int | None = None
    ) -> list[MatchChannelRecord]:
        """Return ACTIVE records whose expires_at is set and earlier than now."""

    @abstractmethod
    async def list_active_matches(self) -> list[MatchChannelRecord]:
        """Return every ACTIVE record."""

    @abstractmethod
    async def mark_deleted(self, match_id: Any) -> bool:
        """
        Transition a record to DELETED.

        Returns True when a transition happened; unknown or already DELETED
        records are a no-op returning False.
        """

    async def health_check(self) -> dict[str, Any]:
        base_health = await super().health_check()
        try:
            active = len(await self.list_active_matches())
        except Exception:
            active = "error"
        return {**base_health, "active_matches": active}


class JsonMatchStore(MatchStore):
    """
    Store backed by a single JSON document ``{"match_channels": [...]}``.

    The whole document is rewritten atomically on every mutation, and the
    write is awaited, so a record is on disk before upsert/mark_deleted return.
    Mutations are serialized by a write lock and only reach memory once the
    new document is on disk.
    """

    def __init__(self, path: str | Path = "match_channels.json") -> None:
        super().__init__("match_store")
        self.path = Path(path)
        self._records: dict[str, MatchChannelRecord] = {}
        self._write_lock = asyncio.Lock()

    async def _initialize_impl(self) -> None:
        try:
            self._records = await asyncio.to_thread(self._read_file)
            self.logger.info(
                f"Match store loaded {len(self._records)} record(s) from {self.path}"
            )
        except FileNotFoundError:
            self._records = {}
            await self._persist(self._records)
            self.logger.info(f"Match store created at {self.path}")
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as e:
            # Derived cache of channel ids: prefer an empty store over a dead bot
            self.logger.error(
                f"Match store at {self.path} unreadable, reinitializing empty: {e}"
            )
            self._records = {}
            await self._persist(self._records)

    async def _shutdown_impl(self) -> None:
        async with self._write_lock:
            await self._persist(self._records)

    def _read_file(self) -> dict[str, MatchChannelRecord]:
        raw = self.path.read_text(encoding="utf-8")
        parsed = json.loads(raw) if raw.strip() else {}
        if not isinstance(parsed, dict):
            raise ValueError("match store document is not an object")
        entries = parsed.get("match_channels") or []
        if not isinstance(entries, list):
            raise ValueError("match_channels is not a list")

        records: dict[str, MatchChannelRecord] = {}
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValueError(f"match_channels[{position}] is not an object")
            record = MatchChannelRecord.from_dict(entry)
            record.match_id = normalize_match_id(record.match_id)
            # Later entries win, matching replace-on-upsert semantics
            records[record.match_id] = record
        return records

    async def _persist(self, records: dict[str, MatchChannelRecord]) -> None:
        document = {"match_channels": [record.to_dict() for record in records.values()]}
        try:
            await asyncio.to_thread(atomic_write_json, self.path, document)
        except AtomicWriteError as e:
            raise PersistenceError(str(e)) from e

    async def upsert(
        self,
        match_id: Any,
        team_a_channel_id: Any,
        team_b_channel_id: Any,
        expires_at: int | None = None,
    ) -> MatchChannelRecord:
        key = normalize_match_id(match_id)
        record = MatchChannelRecord(
            match_id=key,
            team_a_channel_id=str(team_a_channel_id),
            team_b_channel_id=str(team_b_channel_id),
            created_at=now_ms(),
            expires_at=expires_at,
            status=MatchStatus.ACTIVE,
        )
        async with self._write_lock:
            candidate = {k: v for k, v in self._records.items() if k != key}
            # Re-added last so document order follows creation order
            candidate[key] = record
            await self._persist(candidate)
            self._records = candidate
        self.logger.info(f"Match #{key} saved", extra={"match_id": key})
        return record

    async def get_match(self, match_id: Any) -> MatchChannelRecord | None:
        return self._records.get(normalize_match_id(match_id))

    async def get_expired_active_matches(
        self, now: int | None = None
    ) -> list[MatchChannelRecord]:
        current = now_ms() if now is None else now
        return [r for r in self._records.values() if r.is_expired(current)]

    async def list_active_matches(self) -> list[MatchChannelRecord]:
        return [r for r in self._records.values() if r.is_active]

    async def mark_deleted(self, match_id: Any) -> bool:
        key = normalize_match_id(match_id)
        async with self._write_lock:
            record = self._records.get(key)
            if record is None or not record.is_active:
                return False
            candidate = dict(self._records)
            candidate[key] = replace(record, status=MatchStatus.DELETED)
            await self._persist(candidate)
            self._records = candidate
        self.logger.info(f"Match #{key} marked as deleted", extra={"match_id": key})
        return True
