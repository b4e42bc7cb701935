"""Tests for alert events, the HTTP publisher and the emitter."""

import json

import httpx
import pytest

from conftest import RecordingPublisher
from ordered_events.breaker.alerts import (
    AlertEmitter,
    AlertEvent,
    HttpAlertPublisher,
    LogOnlyAlertPublisher,
)
from ordered_events.events.retry import Failure, Success


class TestAlertEvent:
    def test_circuit_breaker_event_fields(self) -> None:
        event = AlertEvent.circuit_breaker()
        body = event.to_dict()
        assert body["eventType"] == "CircuitBreaker"
        assert body["subject"] == "Alert/Break"
        assert body["data"] == {}
        assert body["dataVersion"] == "1.0"
        assert body["id"] == event.id
        assert "T" in body["eventTime"]

    def test_ids_are_unique(self) -> None:
        ids = {AlertEvent.circuit_breaker().id for _ in range(50)}
        assert len(ids) == 50


class TestHttpAlertPublisher:
    @pytest.mark.asyncio
    async def test_posts_event_array_with_key_header(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            publisher = HttpAlertPublisher(
                "https://topic.example/api/events", key="secret-key", client=client
            )
            await publisher.publish([AlertEvent.circuit_breaker()])

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.headers["aeg-sas-key"] == "secret-key"
        body = json.loads(request.content)
        assert isinstance(body, list) and len(body) == 1
        assert body[0]["eventType"] == "CircuitBreaker"

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            publisher = HttpAlertPublisher("https://topic.example/api/events", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await publisher.publish([AlertEvent.circuit_breaker()])


class TestAlertEmitter:
    @pytest.mark.asyncio
    async def test_emit_publishes_one_event(self) -> None:
        publisher = RecordingPublisher()
        outcome = await AlertEmitter(publisher, subject="Alert/Orders").emit()
        assert isinstance(outcome, Success)
        assert publisher.calls == 1
        assert publisher.events[0].subject == "Alert/Orders"
        assert outcome.value == publisher.events[0]

    @pytest.mark.asyncio
    async def test_publish_failure_is_captured_not_retried(self) -> None:
        publisher = RecordingPublisher(fail=True)
        outcome = await AlertEmitter(publisher).emit()
        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, ConnectionError)
        assert publisher.calls == 1

    @pytest.mark.asyncio
    async def test_http_failure_through_emitter(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            emitter = AlertEmitter(HttpAlertPublisher("https://topic.example/api", client=client))
            outcome = await emitter.emit()
        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_log_only_publisher_does_not_raise(self) -> None:
        outcome = await AlertEmitter(LogOnlyAlertPublisher()).emit()
        assert isinstance(outcome, Success)
