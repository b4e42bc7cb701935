"""Sliding-window failure counter kept in the shared store."""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from ordered_events.breaker.trigger import BreakerTrigger
from ordered_events.store.protocol import BREAK_KEY, FAILURES_KEY, Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerResult:
    """recorded is False when the breaker was already broken (nothing written)."""

    recorded: bool
    count: int = 0
    tripped: bool = False


class FailureTracker:
    """Counts failures younger than window_seconds across all workers.

    Pruning, appending, refreshing the window's expiry and reading its size
    happen in one transaction guarded by the breaker flag being absent, so every
    worker's threshold check sees a committed count."""

    def __init__(
        self,
        store: Store,
        trigger: BreakerTrigger,
        window_seconds: int,
        threshold: int,
        clock: Callable[[], float] = time.time,
        failures_key: str = FAILURES_KEY,
        break_key: str = BREAK_KEY,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self._store = store
        self._trigger = trigger
        self._window_seconds = window_seconds
        self._threshold = threshold
        self._clock = clock
        self._failures_key = failures_key
        self._break_key = break_key

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    async def record_failure(self, occurred_at: float | None = None) -> TrackerResult:
        """Add one failure to the window and trip the breaker if the threshold is reached.

        occurred_at (the event's enqueue time) is kept in the entry for tracing only;
        the window is scored by this worker's clock. Store errors propagate."""
        now = self._clock()
        member = f"{now:.6f}:{occurred_at if occurred_at is not None else ''}:{uuid.uuid4().hex}"

        tx = self._store.transaction()
        tx.require_absent(self._break_key)
        tx.zremrangebyscore(self._failures_key, float("-inf"), now - self._window_seconds)
        tx.zadd(self._failures_key, member, now)
        tx.expire(self._failures_key, self._window_seconds)
        tx.zcard(self._failures_key)
        results = await tx.execute()
        if results is None:
            logger.debug("Breaker already broken, failure not recorded")
            return TrackerResult(recorded=False)

        count = int(results[-1])
        logger.info(
            "Failure recorded: %d in the last %ds (threshold %d)",
            count,
            self._window_seconds,
            self._threshold,
        )
        if count < self._threshold:
            return TrackerResult(recorded=True, count=count)
        tripped = await self._trigger.trip(count)
        return TrackerResult(recorded=True, count=count, tripped=tripped)

    async def window_size(self) -> int:
        """Entries currently held in the window (not pruned until the next failure)."""
        return await self._store.zcard(self._failures_key)
