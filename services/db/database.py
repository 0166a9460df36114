"""
Database Helper Module

Provides the aiosqlite connection factory for the relational match store.
Handles schema initialization and recovery from a corrupt database file.
"""

import asyncio
import sqlite3
import time
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from utils.logging import get_logger

from .schema import init_schema

logger = get_logger(__name__)


class Database:
    """
    Connection factory bound to one SQLite file.

    Instances are injected into the repositories that use them instead of
    living as a process-wide singleton.
    """

    def __init__(self, db_path: str | Path = "match_channels.db") -> None:
        self.db_path = str(db_path)
        self._lock = asyncio.Lock()  # Ensures that only one initialization happens
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized:
                return
            try:
                await self._create_schema()
            except sqlite3.DatabaseError as e:
                # Derived cache of channel ids: start empty rather than stay down
                quarantined = self._quarantine_corrupt_file()
                logger.error(
                    f"Database {self.db_path} unreadable ({e}); moved to "
                    f"{quarantined} and reinitialized empty"
                )
                await self._create_schema()
            self._initialized = True
            logger.info(f"Database initialized at {self.db_path}.")

    async def _create_schema(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA foreign_keys=ON")
            await init_schema(db)

    def _quarantine_corrupt_file(self) -> str:
        path = Path(self.db_path)
        target = path.with_name(f"{path.name}.corrupt-{int(time.time())}")
        if path.exists():
            path.replace(target)
        for suffix in ("-wal", "-shm"):
            Path(f"{self.db_path}{suffix}").unlink(missing_ok=True)
        return str(target)

    @asynccontextmanager
    async def get_connection(self):
        """
        Get a connection to the database with optimized settings.

        Usage:
            async with database.get_connection() as db:
                await db.execute("SELECT * FROM match_channels")
        """
        if not self._initialized:
            await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA busy_timeout=5000")
            try:
                await db.execute("PRAGMA journal_mode=WAL")
            except sqlite3.OperationalError as exc:
                # WAL transition can fail briefly if another writer holds a lock; retry once
                if "database is locked" in str(exc).lower():
                    await asyncio.sleep(0.05)
                    await db.execute("PRAGMA journal_mode=WAL")
                else:
                    raise
            # FULL so a committed upsert survives a crash right after channel creation
            await db.execute("PRAGMA synchronous=FULL")
            db.row_factory = aiosqlite.Row
            yield db
