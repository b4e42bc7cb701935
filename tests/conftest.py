"""Shared fixtures: controllable clock, SQLite store, recording alert publisher."""

from pathlib import Path

import pytest

from ordered_events.breaker.alerts import AlertEmitter, AlertEvent
from ordered_events.breaker.tracker import FailureTracker
from ordered_events.breaker.trigger import BreakerTrigger
from ordered_events.store import SqliteStore


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.events: list[AlertEvent] = []
        self.calls = 0
        self.fail = fail

    async def publish(self, events: list[AlertEvent]) -> None:
        self.calls += 1
        if self.fail:
            raise ConnectionError("topic unreachable")
        self.events.extend(events)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "shared_store.db"


@pytest.fixture
async def store(db_path: Path, clock: FakeClock) -> SqliteStore:
    s = SqliteStore(db_path, clock=clock)
    yield s
    await s.close()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


def make_tracker(
    store: SqliteStore,
    publisher: RecordingPublisher,
    clock: FakeClock,
    window_seconds: int = 60,
    threshold: int = 3,
) -> FailureTracker:
    trigger = BreakerTrigger(store, AlertEmitter(publisher), clock=clock)
    return FailureTracker(store, trigger, window_seconds, threshold, clock=clock)
