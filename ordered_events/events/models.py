"""Event model and partition log markers."""

from dataclasses import dataclass

__all__ = [
    "Event",
    "RetryContext",
    "caught_marker",
    "failed_marker",
    "partition_log_key",
    "success_marker",
]


@dataclass(frozen=True)
class Event:
    """One event from a partition. Sequence is unique and increasing within the partition."""

    partition_key: str
    sequence: int
    payload: bytes
    enqueued_at: float


@dataclass
class RetryContext:
    """Per-invocation state of the retry executor."""

    partition_key: str
    sequence: int
    attempt: int = 0


def partition_log_key(partition_key: str) -> str:
    return f"events:{partition_key}"


def success_marker(sequence: int) -> str:
    return str(sequence)


def caught_marker(sequence: int, retry_index: int) -> str:
    return f"{sequence}CAUGHT{retry_index}"


def failed_marker(sequence: int) -> str:
    return f"{sequence}FAILED"
