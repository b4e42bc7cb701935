"""Retry executor: one event, one action, bounded retries, every attempt logged."""

import logging

from ordered_events.events.models import (
    Event,
    RetryContext,
    caught_marker,
    success_marker,
)
from ordered_events.events.partition_log import PartitionLog
from ordered_events.events.processing import ProcessingAction
from ordered_events.events.retry import Outcome, RetryPolicy

logger = logging.getLogger(__name__)


class RetryExecutor:
    """Runs the action under a RetryPolicy and writes attempt markers to the partition log.

    The success marker is written as part of the attempt, so a failed log write
    counts as a failed attempt and is retried like any action error."""

    def __init__(
        self,
        log: PartitionLog,
        max_retries: int = 3,
        retry_delay: float = 0.0,
    ) -> None:
        self._log = log
        self._policy = RetryPolicy(
            max_retries=max_retries,
            on_retry=self._record_retry,
            retry_delay=retry_delay,
        )

    @property
    def max_retries(self) -> int:
        return self._policy.max_retries

    async def _record_retry(self, error: Exception, retry_index: int, context: RetryContext) -> None:
        await self._log.append(
            context.partition_key, caught_marker(context.sequence, retry_index)
        )

    async def run(self, event: Event, action: ProcessingAction) -> Outcome:
        context = RetryContext(partition_key=event.partition_key, sequence=event.sequence)

        async def attempt():
            result = await action(event)
            await self._log.append(event.partition_key, success_marker(event.sequence))
            return result

        return await self._policy.execute_and_capture(attempt, context)
