"""Breaker alerts published to an Event Grid style topic."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from ordered_events.events.retry import Failure, Outcome, Success

logger = logging.getLogger(__name__)

CIRCUIT_BREAKER_EVENT_TYPE = "CircuitBreaker"
DEFAULT_SUBJECT = "Alert/Break"


@dataclass(frozen=True)
class AlertEvent:
    id: str
    subject: str
    event_type: str
    event_time: datetime
    data: dict[str, Any] = field(default_factory=dict)
    data_version: str = "1.0"

    @classmethod
    def circuit_breaker(cls, subject: str = DEFAULT_SUBJECT) -> "AlertEvent":
        return cls(
            id=str(uuid.uuid4()),
            subject=subject,
            event_type=CIRCUIT_BREAKER_EVENT_TYPE,
            event_time=datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "eventType": self.event_type,
            "eventTime": self.event_time.isoformat(),
            "data": dict(self.data),
            "dataVersion": self.data_version,
        }


class AlertPublisher(Protocol):
    async def publish(self, events: list[AlertEvent]) -> None: ...


class HttpAlertPublisher:
    """POSTs a JSON array of events to the topic endpoint. Non-2xx raises httpx.HTTPStatusError."""

    def __init__(
        self,
        endpoint: str,
        key: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._key = key
        self._timeout = timeout
        self._client = client

    async def publish(self, events: list[AlertEvent]) -> None:
        headers = {"aeg-sas-key": self._key} if self._key else {}
        body = [e.to_dict() for e in events]
        if self._client is not None:
            response = await self._client.post(self._endpoint, json=body, headers=headers)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._endpoint, json=body, headers=headers)
            response.raise_for_status()


class LogOnlyAlertPublisher:
    """Used when no alert endpoint is configured."""

    async def publish(self, events: list[AlertEvent]) -> None:
        for event in events:
            logger.warning(
                "No alert endpoint configured; alert %s (%s) not delivered",
                event.id,
                event.event_type,
            )


class AlertEmitter:
    """Publishes one breaker alert. No retry: a failed publish is logged and
    returned as Failure, and the already committed trip stays in place."""

    def __init__(self, publisher: AlertPublisher, subject: str = DEFAULT_SUBJECT) -> None:
        self._publisher = publisher
        self._subject = subject

    async def emit(self) -> Outcome:
        event = AlertEvent.circuit_breaker(self._subject)
        try:
            await self._publisher.publish([event])
        except Exception as e:
            logger.exception("Failed to publish breaker alert %s", event.id)
            return Failure(e)
        logger.info("Published breaker alert %s", event.id)
        return Success(event)
