"""Redis-backed shared store for workers spread over several hosts."""

import logging
import math
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from ordered_events.store.protocol import QueuedTransaction

logger = logging.getLogger(__name__)


def _score(value: float) -> float | str:
    if math.isinf(value):
        return "-inf" if value < 0 else "+inf"
    return value


class RedisTransaction(QueuedTransaction):
    """WATCH the guarded keys, check they are absent, then MULTI/EXEC.

    A WatchError means a guarded key was written after the check; guarded keys
    only ever go from absent to present, so that is a failed precondition."""

    def __init__(self, client: Any) -> None:
        super().__init__()
        self._client = client

    async def execute(self) -> list[Any] | None:
        async with self._client.pipeline(transaction=True) as pipe:
            try:
                if self._guards:
                    await pipe.watch(*self._guards)
                    for key in self._guards:
                        if await pipe.exists(key):
                            return None
                pipe.multi()
                for name, args in self._commands:
                    _queue(pipe, name, args)
                return await pipe.execute()
            except WatchError:
                logger.debug("Transaction aborted: watched keys %s changed", self._guards)
                return None


def _queue(pipe: Any, name: str, args: tuple[Any, ...]) -> None:
    if name == "zadd":
        key, member, score = args
        pipe.zadd(key, {member: score})
    elif name == "zremrangebyscore":
        key, min_score, max_score = args
        pipe.zremrangebyscore(key, _score(min_score), _score(max_score))
    else:
        getattr(pipe, name)(*args)


class RedisStore:
    """Store on a Redis server (redis.asyncio client, decoded responses)."""

    def __init__(self, url: str | None = None, client: Any = None) -> None:
        if client is None:
            if not url:
                raise ValueError("RedisStore needs a url or a client")
            client = aioredis.from_url(url, decode_responses=True)
        self._client = client

    def transaction(self) -> RedisTransaction:
        return RedisTransaction(self._client)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def rpush(self, key: str, *values: str) -> int:
        return int(await self._client.rpush(key, *values))

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        return list(await self._client.lrange(key, start, end))

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(key))

    async def zcard(self, key: str) -> int:
        return int(await self._client.zcard(key))

    async def close(self) -> None:
        await self._client.aclose()
