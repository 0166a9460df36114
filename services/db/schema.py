"""
Canonical schema definition (version=1).

Centralizes table creation for the relational match store.
"""

import aiosqlite

from utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1


async def init_schema(db: aiosqlite.Connection) -> None:
    """
    Initialize the database schema with all required tables.

    Args:
        db: An open database connection
    """
    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at INTEGER DEFAULT (strftime('%s','now'))
        )
        """
    )
    await db.execute(
        """
        INSERT OR IGNORE INTO schema_migrations (version, applied_at)
        VALUES (?, strftime('%s','now'))
        """,
        (SCHEMA_VERSION,),
    )

    # One row per match; soft delete only, rows are never removed
    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS match_channels (
            match_id TEXT PRIMARY KEY,
            team_a_channel_id TEXT NOT NULL,
            team_b_channel_id TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            expires_at INTEGER,
            status TEXT NOT NULL DEFAULT 'ACTIVE'
                CHECK (status IN ('ACTIVE', 'DELETED'))
        )
        """
    )
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_match_channels_status_expires "
        "ON match_channels(status, expires_at)"
    )

    await db.commit()
    logger.debug("Schema initialized (version %s)", SCHEMA_VERSION)
