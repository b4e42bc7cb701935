"""Shared store contract: atomic transactions with key-absent preconditions."""

from typing import Any, Protocol

__all__ = [
    "BREAK_KEY",
    "BREAK_LOG_KEY",
    "DEAD_LETTER_KEY",
    "FAILURES_KEY",
    "QueuedTransaction",
    "Store",
    "StoreError",
    "Transaction",
]

FAILURES_KEY = "failures"
BREAK_KEY = "break"
BREAK_LOG_KEY = "break_log"
DEAD_LETTER_KEY = "deadletter"


class StoreError(Exception):
    """Store backend is misconfigured or cannot be reached."""


class Transaction(Protocol):
    """Commands queued here commit together, or not at all."""

    def require_absent(self, key: str) -> None: ...

    def rpush(self, key: str, value: str) -> None: ...

    def set(self, key: str, value: str) -> None: ...

    def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> None: ...

    def zadd(self, key: str, member: str, score: float) -> None: ...

    def expire(self, key: str, seconds: int) -> None: ...

    def zcard(self, key: str) -> None: ...

    async def execute(self) -> list[Any] | None:
        """Run queued commands. Returns their results, or None if a precondition failed."""
        ...


class Store(Protocol):
    """Key-value store shared by every worker."""

    def transaction(self) -> Transaction: ...

    async def rpush(self, key: str, *values: str) -> int: ...

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]: ...

    async def exists(self, key: str) -> bool: ...

    async def zcard(self, key: str) -> int: ...

    async def close(self) -> None: ...


class QueuedTransaction:
    """Records commands in call order; backends replay them in ``execute``."""

    def __init__(self) -> None:
        self._guards: list[str] = []
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    def require_absent(self, key: str) -> None:
        self._guards.append(key)

    def rpush(self, key: str, value: str) -> None:
        self._commands.append(("rpush", (key, value)))

    def set(self, key: str, value: str) -> None:
        self._commands.append(("set", (key, value)))

    def zremrangebyscore(self, key: str, min_score: float, max_score: float) -> None:
        self._commands.append(("zremrangebyscore", (key, min_score, max_score)))

    def zadd(self, key: str, member: str, score: float) -> None:
        self._commands.append(("zadd", (key, member, score)))

    def expire(self, key: str, seconds: int) -> None:
        self._commands.append(("expire", (key, int(seconds))))

    def zcard(self, key: str) -> None:
        self._commands.append(("zcard", (key,)))

    @property
    def guards(self) -> list[str]:
        return list(self._guards)

    @property
    def commands(self) -> list[tuple[str, tuple[Any, ...]]]:
        return list(self._commands)

    async def execute(self) -> list[Any] | None:
        raise NotImplementedError
