"""Distributed circuit breaker: sliding-window failure tracker, one-way trigger, alerts."""

from ordered_events.breaker.alerts import AlertEmitter, AlertEvent, HttpAlertPublisher
from ordered_events.breaker.tracker import FailureTracker, TrackerResult
from ordered_events.breaker.trigger import BreakerTrigger

__all__ = [
    "AlertEmitter",
    "AlertEvent",
    "BreakerTrigger",
    "FailureTracker",
    "HttpAlertPublisher",
    "TrackerResult",
]
