"""Worker loop: claim a batch from the source, process it, acknowledge or release."""

import asyncio
import logging

from ordered_events.events.batch import BatchProcessor, BatchReport
from ordered_events.events.source import EventSource

logger = logging.getLogger(__name__)


class Worker:
    """One worker handles one batch at a time. Run many workers for parallelism;
    they coordinate only through the source and the shared store."""

    def __init__(
        self,
        source: EventSource,
        processor: BatchProcessor,
        poll_interval: float = 1.0,
        batch_size: int = 10,
        stale_timeout: float = 300.0,
    ) -> None:
        self._source = source
        self._processor = processor
        self._poll_interval = poll_interval
        self._batch_size = batch_size
        self._stale_timeout = stale_timeout
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    def notify(self) -> None:
        """Wake the loop before the next poll (e.g. after an in-process enqueue)."""
        self._wake.set()

    async def start(self) -> None:
        self._stopped = False
        self._task = asyncio.create_task(self._loop())
        logger.info("Worker loop started")

    async def stop(self) -> None:
        """Cancel the loop. A batch in progress is cancelled and released for redelivery."""
        self._stopped = True
        self._wake.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Worker stopped")

    async def run_once(self) -> BatchReport | None:
        """Process one batch. Returns None when nothing was pending.

        A batch that raises is released for redelivery and the error re-raised."""
        events = await self._source.claim_batch(self._batch_size)
        if not events:
            return None
        try:
            report = await self._processor.process(events)
        except BaseException:
            await self._source.release(events)
            raise
        await self._source.complete(events)
        return report

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                recovered = await self._source.recover_stale(self._stale_timeout)
                if recovered:
                    logger.info("Worker: recovered %d stale events", recovered)
                report = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Worker: batch failed, released for redelivery: %s", e)
                report = None
            if report is not None:
                continue
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
