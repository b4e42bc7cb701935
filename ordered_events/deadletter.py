"""Dead-letter routing for events whose retries are exhausted."""

import logging
from typing import Protocol

from ordered_events.breaker.tracker import FailureTracker, TrackerResult
from ordered_events.events.models import Event, failed_marker
from ordered_events.events.partition_log import PartitionLog
from ordered_events.store.protocol import DEAD_LETTER_KEY, Store

logger = logging.getLogger(__name__)


class DeadLetterChannel(Protocol):
    """At-least-once text channel. A message is durable only once flush() returns."""

    async def add(self, message: str) -> None: ...

    async def flush(self) -> None: ...


class StoreDeadLetterQueue:
    """Dead-letter list in the shared store. add() buffers; flush() pushes the buffer atomically."""

    def __init__(self, store: Store, key: str = DEAD_LETTER_KEY) -> None:
        self._store = store
        self._key = key
        self._pending: list[str] = []

    async def add(self, message: str) -> None:
        self._pending.append(message)

    async def flush(self) -> None:
        """Push the buffered messages. The buffer is emptied even if the push fails;
        the caller redelivers the event, which adds its message again."""
        pending, self._pending = self._pending, []
        if not pending:
            return
        tx = self._store.transaction()
        for message in pending:
            tx.rpush(self._key, message)
        await tx.execute()

    async def messages(self) -> list[str]:
        return await self._store.lrange(self._key)


class DeadLetterRouter:
    def __init__(
        self,
        channel: DeadLetterChannel,
        log: PartitionLog,
        tracker: FailureTracker,
    ) -> None:
        self._channel = channel
        self._log = log
        self._tracker = tracker

    async def route(self, event: Event) -> TrackerResult:
        """Forward the payload, then mark the event FAILED and count the failure.

        Channel errors propagate: nothing is marked or counted unless the
        forward was flushed."""
        message = event.payload.decode("utf-8", errors="replace")
        await self._channel.add(message)
        await self._channel.flush()
        logger.warning(
            "Dead-lettered event %s/%s", event.partition_key, event.sequence
        )
        await self._log.append(event.partition_key, failed_marker(event.sequence))
        return await self._tracker.record_failure(event.enqueued_at)
