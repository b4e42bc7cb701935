"""SQLite inbox: a partitioned event stream for workers on one host."""

import logging
import time
from pathlib import Path

import aiosqlite

from ordered_events.events.models import Event

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS event_inbox (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    partition_key   TEXT    NOT NULL,
    sequence        INTEGER NOT NULL,
    payload         BLOB    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'pending',
    enqueued_at     REAL    NOT NULL,
    claimed_at      REAL,
    delivery_count  INTEGER NOT NULL DEFAULT 0,
    UNIQUE (partition_key, sequence)
);

CREATE INDEX IF NOT EXISTS idx_inbox_status_enqueued ON event_inbox(status, enqueued_at);
CREATE INDEX IF NOT EXISTS idx_inbox_partition_status ON event_inbox(partition_key, status);
"""


def _row_to_event(row: tuple) -> Event:
    """(partition_key, sequence, payload, enqueued_at) -> Event."""
    payload = row[2] if isinstance(row[2], bytes) else bytes(row[2])
    return Event(partition_key=row[0], sequence=row[1], payload=payload, enqueued_at=row[3])


class EventInbox:
    """Pending -> processing -> done. A partition with events in flight is not
    claimed again, so batches of one partition never overlap."""

    def __init__(self, db_path: Path, busy_timeout: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def enqueue(
        self,
        partition_key: str,
        payload: bytes,
        sequence: int | None = None,
    ) -> Event:
        """Append an event. Without a sequence, the next one for the partition is assigned."""
        conn = await self._ensure_conn()
        now = time.time()
        await conn.execute("BEGIN IMMEDIATE")
        try:
            if sequence is None:
                cursor = await conn.execute(
                    "SELECT COALESCE(MAX(sequence), 0) FROM event_inbox WHERE partition_key = ?",
                    (partition_key,),
                )
                row = await cursor.fetchone()
                sequence = (row[0] if row else 0) + 1
            await conn.execute(
                """
                INSERT INTO event_inbox (partition_key, sequence, payload, status, enqueued_at)
                VALUES (?, ?, ?, 'pending', ?)
                """,
                (partition_key, sequence, payload, now),
            )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        return Event(partition_key=partition_key, sequence=sequence, payload=payload, enqueued_at=now)

    async def claim_batch(self, limit: int = 10) -> list[Event]:
        """Atomically claim up to limit pending events of the oldest idle partition."""
        conn = await self._ensure_conn()
        now = time.time()
        await conn.execute("BEGIN IMMEDIATE")
        try:
            cursor = await conn.execute(
                """
                SELECT partition_key FROM event_inbox
                WHERE status = 'pending'
                  AND partition_key NOT IN (
                      SELECT partition_key FROM event_inbox WHERE status = 'processing'
                  )
                ORDER BY enqueued_at, id
                LIMIT 1
                """
            )
            row = await cursor.fetchone()
            if row is None:
                await conn.commit()
                return []
            cursor = await conn.execute(
                """
                SELECT partition_key, sequence, payload, enqueued_at FROM event_inbox
                WHERE partition_key = ? AND status = 'pending'
                ORDER BY sequence
                LIMIT ?
                """,
                (row[0], limit),
            )
            rows = await cursor.fetchall()
            await conn.executemany(
                """
                UPDATE event_inbox
                SET status = 'processing', claimed_at = ?, delivery_count = delivery_count + 1
                WHERE partition_key = ? AND sequence = ?
                """,
                [(now, r[0], r[1]) for r in rows],
            )
            await conn.commit()
            return [_row_to_event(r) for r in rows]
        except Exception:
            await conn.rollback()
            raise

    async def _set_status(self, events: list[Event], status: str) -> None:
        if not events:
            return
        conn = await self._ensure_conn()
        await conn.executemany(
            "UPDATE event_inbox SET status = ?, claimed_at = NULL "
            "WHERE partition_key = ? AND sequence = ?",
            [(status, e.partition_key, e.sequence) for e in events],
        )
        await conn.commit()

    async def complete(self, events: list[Event]) -> None:
        """Mark a processed batch as done."""
        await self._set_status(events, "done")

    async def release(self, events: list[Event]) -> None:
        """Return a batch to pending for redelivery."""
        await self._set_status(events, "pending")

    async def recover_stale(self, stale_timeout: float) -> int:
        """Reset events claimed longer than stale_timeout ago (crashed worker) to pending."""
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            """
            UPDATE event_inbox SET status = 'pending', claimed_at = NULL
            WHERE status = 'processing' AND claimed_at < ?
            """,
            (time.time() - stale_timeout,),
        )
        await conn.commit()
        return cursor.rowcount or 0

    async def count(self, status: str) -> int:
        conn = await self._ensure_conn()
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM event_inbox WHERE status = ?", (status,)
        )
        row = await cursor.fetchone()
        return row[0] if row else 0
