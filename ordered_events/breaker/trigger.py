"""One-way breaker trip: not broken -> broken, at most once across all workers."""

import logging
import time
from datetime import datetime
from typing import Callable

from ordered_events.breaker.alerts import AlertEmitter
from ordered_events.store.protocol import BREAK_KEY, BREAK_LOG_KEY, Store

logger = logging.getLogger(__name__)


def format_trip_record(tripped_at: float, failure_count: int) -> str:
    stamp = datetime.fromtimestamp(tripped_at).isoformat(sep=" ", timespec="seconds")
    return f"FAILURE TRIGGERED AT {stamp} WITH {failure_count} FAILURES"


class BreakerTrigger:
    """Sets the breaker flag under a key-absent precondition.

    The conditional transaction is the only de-duplication point: exactly one
    worker commits, and only that worker emits the alert. Nothing here clears
    the flag; a half-open probe would have to start from is_broken()."""

    def __init__(
        self,
        store: Store,
        emitter: AlertEmitter,
        clock: Callable[[], float] = time.time,
        break_key: str = BREAK_KEY,
        break_log_key: str = BREAK_LOG_KEY,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._clock = clock
        self._break_key = break_key
        self._break_log_key = break_log_key

    async def trip(self, failure_count: int) -> bool:
        """Returns True only for the worker whose transaction set the flag."""
        tx = self._store.transaction()
        tx.require_absent(self._break_key)
        tx.rpush(self._break_log_key, format_trip_record(self._clock(), failure_count))
        tx.set(self._break_key, "true")
        if await tx.execute() is None:
            logger.info("Breaker already tripped by another worker")
            return False
        logger.error("Circuit breaker tripped with %d failures in window", failure_count)
        await self._emitter.emit()
        return True

    async def is_broken(self) -> bool:
        return await self._store.exists(self._break_key)

    async def trip_log(self) -> list[str]:
        return await self._store.lrange(self._break_log_key)
