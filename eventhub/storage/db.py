from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class Database:
    """Single shared aiosqlite connection.

    The connection runs in autocommit mode; multi-statement writes go through
    ``transaction()``, which holds ``BEGIN IMMEDIATE`` so a read-check-write
    sequence cannot interleave with another writer.
    """

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        async with self._connect_lock:
            if self._conn is None:
                db_dir = os.path.dirname(self.path)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)
                # Small timeout helps avoid long stalls on slow disks.
                conn = await aiosqlite.connect(self.path, timeout=5, isolation_level=None)
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA foreign_keys = ON;")
                await conn.execute("PRAGMA journal_mode = WAL;")
                await conn.execute("PRAGMA synchronous = NORMAL;")
                await conn.execute("PRAGMA busy_timeout = 5000;")
                self._conn = conn
        return self._conn

    async def execute(self, query: str, params: Iterable[Any] | Dict[str, Any] = ()) -> int:
        conn = await self.connect()
        async with self._lock:
            async with conn.execute(query, params) as cursor:
                return cursor.rowcount

    async def fetchone(
        self, query: str, params: Iterable[Any] | Dict[str, Any] = ()
    ) -> Optional[aiosqlite.Row]:
        conn = await self.connect()
        async with self._lock:
            async with conn.execute(query, params) as cursor:
                return await cursor.fetchone()

    async def fetchall(
        self, query: str, params: Iterable[Any] | Dict[str, Any] = ()
    ) -> List[aiosqlite.Row]:
        conn = await self.connect()
        async with self._lock:
            async with conn.execute(query, params) as cursor:
                return list(await cursor.fetchall())

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await self.connect()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def init_db(self):
        await self.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                username TEXT,
                full_name TEXT,
                role TEXT NOT NULL DEFAULT 'user',
                preferences TEXT NOT NULL DEFAULT '[]',
                created_at TEXT,
                updated_at TEXT
            );
        """
        )
        await self.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                event_id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                location TEXT NOT NULL,
                event_date TEXT NOT NULL,
                event_time TEXT NOT NULL,
                type TEXT NOT NULL,
                capacity INTEGER NOT NULL CHECK (capacity >= 1),
                creator_id INTEGER,
                created_at TEXT,
                updated_at TEXT
            );
        """
        )
        await self.execute(
            """
            CREATE TABLE IF NOT EXISTS registrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id TEXT NOT NULL,
                user_id INTEGER NOT NULL,
                registered_at TEXT NOT NULL,
                UNIQUE (event_id, user_id),
                FOREIGN KEY(user_id) REFERENCES users(user_id) ON DELETE CASCADE,
                FOREIGN KEY(event_id) REFERENCES events(event_id) ON DELETE CASCADE
            );
        """
        )
        # Per-user mirror of registrations, kept in the same transaction.
        await self.execute(
            """
            CREATE TABLE IF NOT EXISTS user_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                event_id TEXT NOT NULL,
                UNIQUE (user_id, event_id),
                FOREIGN KEY(user_id) REFERENCES users(user_id) ON DELETE CASCADE,
                FOREIGN KEY(event_id) REFERENCES events(event_id) ON DELETE CASCADE
            );
        """
        )

        idx_statements = [
            "CREATE INDEX IF NOT EXISTS idx_registrations_user_id ON registrations(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_registrations_registered_at ON registrations(registered_at)",
            "CREATE INDEX IF NOT EXISTS idx_events_type ON events(type)",
            "CREATE INDEX IF NOT EXISTS idx_events_date_time ON events(event_date, event_time)",
            "CREATE INDEX IF NOT EXISTS idx_user_events_event_id ON user_events(event_id)",
        ]
        for stmt in idx_statements:
            try:
                await self.execute(stmt)
            except aiosqlite.Error as exc:
                logger.warning("Failed to create index: %s (%s)", stmt, exc)
