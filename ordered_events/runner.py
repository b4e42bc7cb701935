"""Entry point for a worker process: settings, logging, store, pipeline, loop."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable

from dotenv import load_dotenv

from ordered_events import secrets
from ordered_events.breaker.alerts import (
    AlertEmitter,
    AlertPublisher,
    HttpAlertPublisher,
    LogOnlyAlertPublisher,
)
from ordered_events.breaker.tracker import FailureTracker
from ordered_events.breaker.trigger import BreakerTrigger
from ordered_events.config_check import check_settings
from ordered_events.deadletter import DeadLetterRouter, StoreDeadLetterQueue
from ordered_events.events.batch import BatchProcessor
from ordered_events.events.executor import RetryExecutor
from ordered_events.events.inbox import EventInbox
from ordered_events.events.partition_log import PartitionLog
from ordered_events.events.processing import FaultInjectingProcessor, ProcessingAction
from ordered_events.events.worker import Worker
from ordered_events.logging_config import setup_logging
from ordered_events.settings import get_setting, load_settings
from ordered_events.store import Store, open_store

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def build_alert_publisher(settings: dict[str, Any]) -> AlertPublisher:
    endpoint = get_setting(settings, "alerts.endpoint") or ""
    if not endpoint:
        return LogOnlyAlertPublisher()
    key_secret = get_setting(settings, "alerts.key_secret", "ALERT_TOPIC_KEY")
    return HttpAlertPublisher(
        endpoint,
        key=secrets.get_secret(key_secret) if key_secret else None,
        timeout=float(get_setting(settings, "alerts.timeout", 10.0)),
    )


def build_processor(
    settings: dict[str, Any],
    store: Store,
    publisher: AlertPublisher,
    action: ProcessingAction | None = None,
    clock: Callable[[], float] = time.time,
) -> BatchProcessor:
    """Wire executor -> dead-letter router -> tracker -> trigger -> emitter."""
    log = PartitionLog(store)
    emitter = AlertEmitter(publisher, subject=get_setting(settings, "alerts.subject", "Alert/Break"))
    trigger = BreakerTrigger(store, emitter, clock=clock)
    tracker = FailureTracker(
        store,
        trigger,
        window_seconds=int(get_setting(settings, "breaker.failure_seconds", 60)),
        threshold=int(get_setting(settings, "breaker.failure_threshold", 10)),
        clock=clock,
    )
    channel = StoreDeadLetterQueue(store, key=get_setting(settings, "dead_letter.key", "deadletter"))
    executor = RetryExecutor(
        log,
        max_retries=int(get_setting(settings, "processing.max_retries", 3)),
        retry_delay=float(get_setting(settings, "processing.retry_delay", 0.0)),
    )
    if action is None:
        action = FaultInjectingProcessor(int(get_setting(settings, "processing.fail_every", 100)))
    return BatchProcessor(executor, DeadLetterRouter(channel, log, tracker), action)


def build_worker(settings: dict[str, Any], inbox: EventInbox, processor: BatchProcessor) -> Worker:
    src = settings.get("source", {})
    return Worker(
        inbox,
        processor,
        poll_interval=float(src.get("poll_interval", 1.0)),
        batch_size=int(src.get("batch_size", 10)),
        stale_timeout=float(src.get("stale_timeout", 300)),
    )


def open_inbox(settings: dict[str, Any]) -> EventInbox:
    return EventInbox(
        _PROJECT_ROOT / get_setting(settings, "source.db_path", "data/inbox.db"),
        busy_timeout=int(get_setting(settings, "store.busy_timeout", 5000)),
    )


async def main_async() -> None:
    """Bootstrap: settings -> logging -> check -> store -> pipeline -> run until cancelled."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    ok, reason = check_settings(settings)
    if not ok:
        raise SystemExit(f"Invalid configuration: {reason}")

    store = open_store(settings, _PROJECT_ROOT)
    inbox = open_inbox(settings)
    processor = build_processor(settings, store, build_alert_publisher(settings))
    worker = build_worker(settings, inbox, processor)
    logger.info(
        "Worker starting: backend=%s window=%ss threshold=%s",
        get_setting(settings, "store.backend"),
        get_setting(settings, "breaker.failure_seconds"),
        get_setting(settings, "breaker.failure_threshold"),
    )
    await worker.start()
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await worker.stop()
        await inbox.close()
        await store.close()


def main() -> None:
    """Synchronous entry for the worker process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass


__all__ = ["build_processor", "main"]
