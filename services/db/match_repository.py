"""
Relational match store.

Implements the MatchStore contract on top of the ``match_channels`` table.
match_id is the primary key, so re-creation is an explicit upsert
(``INSERT ... ON CONFLICT DO UPDATE``) rather than a second row.
"""

from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from services.match_store import MatchStore, normalize_match_id, now_ms
from utils.errors import PersistenceError
from utils.types import MatchChannelRecord, MatchStatus

from .database import Database

if TYPE_CHECKING:
    from aiosqlite import Row


def _row_to_record(row: Row) -> MatchChannelRecord:
    return MatchChannelRecord(
        match_id=row["match_id"],
        team_a_channel_id=row["team_a_channel_id"],
        team_b_channel_id=row["team_b_channel_id"],
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]) if row["expires_at"] is not None else None,
        status=MatchStatus(row["status"]),
    )


class SqliteMatchStore(MatchStore):
    """Match store backed by aiosqlite."""

    def __init__(self, database: Database) -> None:
        super().__init__("match_store")
        self.database = database

    async def _initialize_impl(self) -> None:
        await self.database.initialize()

    @asynccontextmanager
    async def _transaction(self):
        """Auto-commits on success, rolls back and wraps sqlite errors on failure."""
        try:
            async with self.database.get_connection() as db:
                try:
                    yield db
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except sqlite3.Error as e:
            raise PersistenceError(f"Match store write failed: {e}") from e

    async def _fetch_all(self, query: str, params: tuple[Any, ...] = ()) -> list[Row]:
        try:
            async with self.database.get_connection() as db:
                cursor = await db.execute(query, params)
                return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise PersistenceError(f"Match store read failed: {e}") from e

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
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO match_channels
                    (match_id, team_a_channel_id, team_b_channel_id,
                     created_at, expires_at, status)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(match_id) DO UPDATE SET
                    team_a_channel_id = excluded.team_a_channel_id,
                    team_b_channel_id = excluded.team_b_channel_id,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at,
                    status = excluded.status
                """,
                (
                    record.match_id,
                    record.team_a_channel_id,
                    record.team_b_channel_id,
                    record.created_at,
                    record.expires_at,
                    record.status.value,
                ),
            )
        self.logger.info(f"Match #{key} saved", extra={"match_id": key})
        return record

    async def get_match(self, match_id: Any) -> MatchChannelRecord | None:
        rows = await self._fetch_all(
            "SELECT * FROM match_channels WHERE match_id = ?",
            (normalize_match_id(match_id),),
        )
        return _row_to_record(rows[0]) if rows else None

    async def get_expired_active_matches(
        self, now: int | None = None
    ) -> list[MatchChannelRecord]:
        current = now_ms() if now is None else now
        rows = await self._fetch_all(
            """
            SELECT * FROM match_channels
            WHERE status = 'ACTIVE' AND expires_at IS NOT NULL AND expires_at < ?
            ORDER BY expires_at
            """,
            (current,),
        )
        return [_row_to_record(row) for row in rows]

    async def list_active_matches(self) -> list[MatchChannelRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM match_channels WHERE status = 'ACTIVE' ORDER BY created_at"
        )
        return [_row_to_record(row) for row in rows]

    async def mark_deleted(self, match_id: Any) -> bool:
        key = normalize_match_id(match_id)
        async with self._transaction() as db:
            cursor = await db.execute(
                """
                UPDATE match_channels SET status = 'DELETED'
                WHERE match_id = ? AND status = 'ACTIVE'
                """,
                (key,),
            )
            changed = cursor.rowcount > 0
        if changed:
            self.logger.info(
                f"Match #{key} marked as deleted", extra={"match_id": key}
            )
        return changed
