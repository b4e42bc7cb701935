"""Bounded retry policy returning a tagged outcome instead of raising."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from ordered_events.events.models import RetryContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = ["Failure", "Outcome", "RetryHook", "RetryPolicy", "Success", "compute_retry_delay"]


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int = 1


@dataclass(frozen=True)
class Failure:
    error: Exception
    attempts: int = 1


Outcome = Union[Success[Any], Failure]

# (error, retry_index starting at 1, context)
RetryHook = Callable[[Exception, int, RetryContext], Awaitable[None]]


def compute_retry_delay(attempt: int, base: float, max_delay: float = 30.0) -> float:
    """Exponential backoff with jitter. base <= 0 means no wait."""
    if base <= 0:
        return 0.0
    delay = min(base * (2 ** (attempt - 1)), max_delay)
    return delay + random.uniform(0, delay * 0.3)


class RetryPolicy:
    """Run an action up to 1 + max_retries times.

    The hook fires after every failed attempt that will be retried, so a run
    that never succeeds fires it exactly max_retries times."""

    def __init__(
        self,
        max_retries: int = 3,
        on_retry: RetryHook | None = None,
        retry_delay: float = 0.0,
        max_delay: float = 30.0,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = max_retries
        self._on_retry = on_retry
        self._retry_delay = retry_delay
        self._max_delay = max_delay

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def execute_and_capture(
        self,
        action: Callable[[], Awaitable[T]],
        context: RetryContext,
    ) -> Outcome:
        retry_index = 0
        while True:
            context.attempt = retry_index + 1
            try:
                value = await action()
                return Success(value, attempts=context.attempt)
            except Exception as e:
                if retry_index >= self._max_retries:
                    logger.warning(
                        "Event %s/%s failed after %d attempts: %s",
                        context.partition_key,
                        context.sequence,
                        context.attempt,
                        e,
                    )
                    return Failure(e, attempts=context.attempt)
                retry_index += 1
                logger.info(
                    "Event %s/%s attempt %d failed, retrying (%d/%d): %s",
                    context.partition_key,
                    context.sequence,
                    context.attempt,
                    retry_index,
                    self._max_retries,
                    e,
                )
                if self._on_retry is not None:
                    try:
                        await self._on_retry(e, retry_index, context)
                    except Exception as hook_error:
                        logger.exception(
                            "Retry hook failed for event %s/%s",
                            context.partition_key,
                            context.sequence,
                        )
                        return Failure(hook_error, attempts=context.attempt)
                delay = compute_retry_delay(retry_index, self._retry_delay, self._max_delay)
                if delay:
                    await asyncio.sleep(delay)
