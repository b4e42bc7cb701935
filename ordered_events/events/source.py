"""Event source contract used by the worker."""

from typing import Protocol

from ordered_events.events.models import Event


class EventSource(Protocol):
    """Delivers batches of events from one partition, in sequence order.

    complete() acknowledges a batch; release() hands it back for redelivery."""

    async def claim_batch(self, limit: int) -> list[Event]: ...

    async def complete(self, events: list[Event]) -> None: ...

    async def release(self, events: list[Event]) -> None: ...

    async def recover_stale(self, stale_timeout: float) -> int: ...

    async def close(self) -> None: ...
