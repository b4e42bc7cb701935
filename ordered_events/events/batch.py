"""Sequential batch processing: retry each event, dead-letter the ones that never succeed."""

import logging
from dataclasses import dataclass, field

from ordered_events.deadletter import DeadLetterRouter
from ordered_events.events.executor import RetryExecutor
from ordered_events.events.models import Event
from ordered_events.events.processing import ProcessingAction
from ordered_events.events.retry import Failure

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    succeeded: list[Event] = field(default_factory=list)
    failed: list[Event] = field(default_factory=list)


class BatchProcessor:
    """Feeds events to the executor strictly in arrival order, one at a time.

    A permanently failed event does not stop the rest of the batch. Errors from
    dead-letter routing (channel or store) propagate so the host can redeliver."""

    def __init__(
        self,
        executor: RetryExecutor,
        router: DeadLetterRouter,
        action: ProcessingAction,
    ) -> None:
        self._executor = executor
        self._router = router
        self._action = action

    async def process(self, events: list[Event]) -> BatchReport:
        logger.info("Processing batch of size %d", len(events))
        report = BatchReport()
        for event in events:
            outcome = await self._executor.run(event, self._action)
            if isinstance(outcome, Failure):
                await self._router.route(event)
                report.failed.append(event)
            else:
                report.succeeded.append(event)
        if report.failed:
            logger.warning(
                "Batch done: %d succeeded, %d dead-lettered",
                len(report.succeeded),
                len(report.failed),
            )
        return report
