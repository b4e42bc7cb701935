"""Append-only per-partition observability log. Written by the core, never read back by it."""

from ordered_events.events.models import partition_log_key
from ordered_events.store.protocol import Store


class PartitionLog:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def append(self, partition_key: str, entry: str) -> None:
        await self._store.rpush(partition_log_key(partition_key), entry)

    async def entries(self, partition_key: str) -> list[str]:
        """All entries for a partition, oldest first (inspection and tests)."""
        return await self._store.lrange(partition_log_key(partition_key))
