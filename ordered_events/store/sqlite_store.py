"""SQLite-backed shared store. Workers on one host share the database file."""

import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Any, Callable

import aiosqlite

from ordered_events.store.protocol import QueuedTransaction

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS store_keys (
    key         TEXT PRIMARY KEY,
    kind        TEXT NOT NULL,
    expires_at  REAL
);

CREATE TABLE IF NOT EXISTS store_strings (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS store_lists (
    id     INTEGER PRIMARY KEY AUTOINCREMENT,
    key    TEXT NOT NULL,
    value  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS store_zsets (
    key     TEXT NOT NULL,
    member  TEXT NOT NULL,
    score   REAL NOT NULL,
    PRIMARY KEY (key, member)
);

CREATE INDEX IF NOT EXISTS idx_store_lists_key ON store_lists(key, id);
CREATE INDEX IF NOT EXISTS idx_store_zsets_score ON store_zsets(key, score);
CREATE INDEX IF NOT EXISTS idx_store_keys_expiry ON store_keys(expires_at);
"""

_DATA_TABLES = ("store_strings", "store_lists", "store_zsets")


class SqliteTransaction(QueuedTransaction):
    def __init__(self, store: "SqliteStore") -> None:
        super().__init__()
        self._store = store

    async def execute(self) -> list[Any] | None:
        return await self._store._atomic(self.guards, self.commands)


class SqliteStore:
    """Store on a single SQLite file. Transactions take the write lock (BEGIN IMMEDIATE)
    so they serialize across connections and processes. Key expiry is lazy."""

    def __init__(
        self,
        db_path: Path,
        busy_timeout: int = 5000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._clock = clock
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path), isolation_level=None)
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._conn.executescript(_SCHEMA)
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        async with self._lock:
            if self._conn:
                await self._conn.close()
                self._conn = None

    def transaction(self) -> SqliteTransaction:
        return SqliteTransaction(self)

    async def _atomic(
        self, guards: list[str], commands: list[tuple[str, tuple[Any, ...]]]
    ) -> list[Any] | None:
        async with self._lock:
            conn = await self._ensure_conn()
            now = self._clock()
            await conn.execute("BEGIN IMMEDIATE")
            try:
                await self._purge_expired(conn, now)
                for key in guards:
                    if await self._is_live(conn, key, now):
                        await conn.rollback()
                        return None
                results = []
                for name, args in commands:
                    handler = getattr(self, f"_cmd_{name}")
                    results.append(await handler(conn, now, *args))
                await conn.commit()
                return results
            except Exception:
                await conn.rollback()
                raise

    async def _purge_expired(self, conn: aiosqlite.Connection, now: float) -> None:
        cursor = await conn.execute(
            "SELECT key FROM store_keys WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (now,),
        )
        for (key,) in await cursor.fetchall():
            await self._delete_key(conn, key)

    async def _delete_key(self, conn: aiosqlite.Connection, key: str) -> None:
        for table in _DATA_TABLES:
            await conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
        await conn.execute("DELETE FROM store_keys WHERE key = ?", (key,))

    async def _is_live(self, conn: aiosqlite.Connection, key: str, now: float) -> bool:
        cursor = await conn.execute(
            "SELECT expires_at FROM store_keys WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        if row is None:
            return False
        return row[0] is None or row[0] > now

    async def _drop_if_empty(self, conn: aiosqlite.Connection, key: str, table: str) -> None:
        cursor = await conn.execute(f"SELECT COUNT(*) FROM {table} WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if not row or row[0] == 0:
            await conn.execute("DELETE FROM store_keys WHERE key = ?", (key,))

    async def _cmd_rpush(
        self, conn: aiosqlite.Connection, now: float, key: str, value: str
    ) -> int:
        await conn.execute(
            "INSERT OR IGNORE INTO store_keys (key, kind) VALUES (?, 'list')", (key,)
        )
        await conn.execute(
            "INSERT INTO store_lists (key, value) VALUES (?, ?)", (key, value)
        )
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM store_lists WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def _cmd_set(
        self, conn: aiosqlite.Connection, now: float, key: str, value: str
    ) -> bool:
        await conn.execute(
            "INSERT OR REPLACE INTO store_keys (key, kind, expires_at) VALUES (?, 'string', NULL)",
            (key,),
        )
        await conn.execute(
            "INSERT OR REPLACE INTO store_strings (key, value) VALUES (?, ?)", (key, value)
        )
        return True

    async def _cmd_zremrangebyscore(
        self,
        conn: aiosqlite.Connection,
        now: float,
        key: str,
        min_score: float,
        max_score: float,
    ) -> int:
        clauses = ["key = ?"]
        params: list[Any] = [key]
        if not (math.isinf(min_score) and min_score < 0):
            clauses.append("score >= ?")
            params.append(min_score)
        if not (math.isinf(max_score) and max_score > 0):
            clauses.append("score <= ?")
            params.append(max_score)
        cursor = await conn.execute(
            f"DELETE FROM store_zsets WHERE {' AND '.join(clauses)}", params
        )
        await self._drop_if_empty(conn, key, "store_zsets")
        return cursor.rowcount or 0

    async def _cmd_zadd(
        self, conn: aiosqlite.Connection, now: float, key: str, member: str, score: float
    ) -> int:
        await conn.execute(
            "INSERT OR IGNORE INTO store_keys (key, kind) VALUES (?, 'zset')", (key,)
        )
        cursor = await conn.execute(
            "INSERT OR IGNORE INTO store_zsets (key, member, score) VALUES (?, ?, ?)",
            (key, member, score),
        )
        added = cursor.rowcount or 0
        if not added:
            await conn.execute(
                "UPDATE store_zsets SET score = ? WHERE key = ? AND member = ?",
                (score, key, member),
            )
        return added

    async def _cmd_expire(
        self, conn: aiosqlite.Connection, now: float, key: str, seconds: int
    ) -> bool:
        cursor = await conn.execute(
            "UPDATE store_keys SET expires_at = ? WHERE key = ?", (now + seconds, key)
        )
        return bool(cursor.rowcount)

    async def _cmd_zcard(self, conn: aiosqlite.Connection, now: float, key: str) -> int:
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM store_zsets WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def rpush(self, key: str, *values: str) -> int:
        tx = self.transaction()
        for value in values:
            tx.rpush(key, value)
        results = await tx.execute()
        return results[-1] if results else 0

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        """Inclusive range, negative indexes count from the tail."""
        async with self._lock:
            conn = await self._ensure_conn()
            if not await self._is_live(conn, key, self._clock()):
                return []
            cursor = await conn.execute(
                "SELECT value FROM store_lists WHERE key = ? ORDER BY id", (key,)
            )
            values = [row[0] for row in await cursor.fetchall()]
        stop = None if end == -1 else end + 1
        return values[start:stop]

    async def exists(self, key: str) -> bool:
        async with self._lock:
            conn = await self._ensure_conn()
            return await self._is_live(conn, key, self._clock())

    async def zcard(self, key: str) -> int:
        async with self._lock:
            conn = await self._ensure_conn()
            now = self._clock()
            if not await self._is_live(conn, key, now):
                return 0
            return await self._cmd_zcard(conn, now, key)
