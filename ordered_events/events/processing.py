"""Per-event processing actions."""

from typing import Any, Awaitable, Callable

from ordered_events.events.models import Event

ProcessingAction = Callable[[Event], Awaitable[Any]]


class ProcessingError(Exception):
    """Raised by a processing action; the retry executor treats it as retryable."""


class FaultInjectingProcessor:
    """Default action: decodes the payload, and fails every event whose sequence
    is a multiple of fail_every so the failure path can be exercised end to end.
    fail_every=0 disables the injected failures."""

    def __init__(self, fail_every: int = 100) -> None:
        self._fail_every = fail_every

    async def __call__(self, event: Event) -> str:
        if self._fail_every and event.sequence % self._fail_every == 0:
            raise ProcessingError(
                f"Injected failure for {event.partition_key}/{event.sequence}"
            )
        return event.payload.decode("utf-8", errors="replace")
