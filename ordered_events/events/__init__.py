"""Events: model, retry policy, executor, batch processing and the worker loop."""

from ordered_events.events.models import Event, RetryContext
from ordered_events.events.retry import Failure, Outcome, RetryPolicy, Success

__all__ = ["Event", "Failure", "Outcome", "RetryContext", "RetryPolicy", "Success"]
