"""Tests for RedisStore: call shapes against a stub pipeline, WATCH/MULTI/EXEC on fakeredis."""

import asyncio
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
from redis.exceptions import WatchError

from conftest import FakeClock, RecordingPublisher, make_tracker
from ordered_events.store import BREAK_KEY, BREAK_LOG_KEY, FAILURES_KEY, RedisStore


class FakePipeline:
    """Immediate mode until multi(); afterwards every command is queued."""

    def __init__(self, existing: set[str] | None = None, results: list | None = None) -> None:
        self.existing = existing or set()
        self.results = results or []
        self.watched: list[str] = []
        self.queued: list[tuple[str, tuple]] = []
        self.in_multi = False
        self.raise_watch_error = False

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    async def watch(self, *keys: str) -> None:
        self.watched.extend(keys)

    async def exists(self, key: str) -> int:
        return int(key in self.existing)

    def multi(self) -> None:
        self.in_multi = True

    async def execute(self) -> list:
        if self.raise_watch_error:
            raise WatchError("Watched variable changed.")
        return list(self.results)

    def __getattr__(self, name: str):
        def queue(*args):
            self.queued.append((name, args))
            return self

        return queue


class FakeRedis:
    def __init__(self, pipe: FakePipeline) -> None:
        self.pipe = pipe
        self.transaction_flags: list[bool] = []

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        self.transaction_flags.append(transaction)
        return self.pipe


class TestRedisTransaction:
    @pytest.mark.asyncio
    async def test_queues_window_commands_after_guard_check(self) -> None:
        pipe = FakePipeline(results=[0, 1, True, 1])
        store = RedisStore(client=FakeRedis(pipe))

        tx = store.transaction()
        tx.require_absent("break")
        tx.zremrangebyscore("failures", float("-inf"), 40.0)
        tx.zadd("failures", "m1", 100.0)
        tx.expire("failures", 60)
        tx.zcard("failures")
        result = await tx.execute()

        assert result == [0, 1, True, 1]
        assert pipe.watched == ["break"]
        assert pipe.in_multi is True
        assert pipe.queued == [
            ("zremrangebyscore", ("failures", "-inf", 40.0)),
            ("zadd", ("failures", {"m1": 100.0})),
            ("expire", ("failures", 60)),
            ("zcard", ("failures",)),
        ]

    @pytest.mark.asyncio
    async def test_existing_guard_key_aborts_before_multi(self) -> None:
        pipe = FakePipeline(existing={"break"})
        store = RedisStore(client=FakeRedis(pipe))

        tx = store.transaction()
        tx.require_absent("break")
        tx.set("break", "true")
        assert await tx.execute() is None
        assert pipe.in_multi is False
        assert pipe.queued == []

    @pytest.mark.asyncio
    async def test_watch_error_is_a_failed_precondition(self) -> None:
        pipe = FakePipeline()
        pipe.raise_watch_error = True
        store = RedisStore(client=FakeRedis(pipe))

        tx = store.transaction()
        tx.require_absent("break")
        tx.rpush("break_log", "entry")
        tx.set("break", "true")
        assert await tx.execute() is None

    @pytest.mark.asyncio
    async def test_unguarded_transaction_skips_watch(self) -> None:
        pipe = FakePipeline(results=[1, 2])
        client = FakeRedis(pipe)
        store = RedisStore(client=client)

        tx = store.transaction()
        tx.rpush("deadletter", "a")
        tx.rpush("deadletter", "b")
        assert await tx.execute() == [1, 2]
        assert pipe.watched == []
        assert client.transaction_flags == [True]


class TestRedisStoreDirect:
    @pytest.mark.asyncio
    async def test_direct_commands_delegate_to_client(self) -> None:
        client = AsyncMock()
        client.rpush.return_value = 3
        client.lrange.return_value = ["1", "2", "3"]
        client.exists.return_value = 1
        client.zcard.return_value = 4
        store = RedisStore(client=client)

        assert await store.rpush("events:p", "3") == 3
        assert await store.lrange("events:p") == ["1", "2", "3"]
        assert await store.exists("break") is True
        assert await store.zcard("failures") == 4
        client.lrange.assert_awaited_once_with("events:p", 0, -1)

        await store.close()
        client.aclose.assert_awaited_once()

    def test_requires_url_or_client(self) -> None:
        with pytest.raises(ValueError):
            RedisStore()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


def _redis_store(server: fakeredis.FakeServer) -> RedisStore:
    return RedisStore(client=fakeredis.aioredis.FakeRedis(server=server, decode_responses=True))


class TestRedisTransactionsOnServer:
    @pytest.mark.asyncio
    async def test_window_transaction_results(self, redis_server: fakeredis.FakeServer) -> None:
        store = _redis_store(redis_server)
        try:
            tx = store.transaction()
            tx.require_absent(BREAK_KEY)
            tx.zremrangebyscore(FAILURES_KEY, float("-inf"), 40.0)
            tx.zadd(FAILURES_KEY, "m1", 100.0)
            tx.expire(FAILURES_KEY, 60)
            tx.zcard(FAILURES_KEY)
            results = await tx.execute()
            assert results[-1] == 1
            assert await store.zcard(FAILURES_KEY) == 1
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_guard_key_present_writes_nothing(self, redis_server: fakeredis.FakeServer) -> None:
        store = _redis_store(redis_server)
        try:
            await store.rpush("marker", "x")
            tx = store.transaction()
            tx.require_absent("marker")
            tx.rpush(BREAK_LOG_KEY, "entry")
            assert await tx.execute() is None
            assert await store.lrange(BREAK_LOG_KEY) == []
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_concurrent_trackers_trip_exactly_once(
        self, redis_server: fakeredis.FakeServer, clock: FakeClock
    ) -> None:
        publisher = RecordingPublisher()
        stores = [_redis_store(redis_server) for _ in range(10)]
        trackers = [make_tracker(s, publisher, clock, threshold=3) for s in stores]
        try:
            results = await asyncio.gather(*(t.record_failure() for t in trackers))
            assert await stores[0].exists(BREAK_KEY)
            assert len(await stores[0].lrange(BREAK_LOG_KEY)) == 1
        finally:
            for s in stores:
                await s.close()

        assert sum(r.tripped for r in results) == 1
        assert len(publisher.events) == 1
        counts = sorted(r.count for r in results if r.recorded)
        assert counts == list(range(1, len(counts) + 1))
        assert counts[-1] >= 3

    @pytest.mark.asyncio
    async def test_failures_after_trip_are_not_recorded(
        self, redis_server: fakeredis.FakeServer, clock: FakeClock
    ) -> None:
        publisher = RecordingPublisher()
        store = _redis_store(redis_server)
        tracker = make_tracker(store, publisher, clock, threshold=2)
        try:
            await tracker.record_failure()
            clock.advance(10)
            second = await tracker.record_failure()
            clock.advance(10)
            third = await tracker.record_failure()
            assert second.tripped is True
            assert third.recorded is False
            assert await tracker.window_size() == 2
        finally:
            await store.close()
        assert len(publisher.events) == 1
