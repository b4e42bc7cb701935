"""Shared store: failure window, breaker flag, partition logs and dead-letter list."""

from pathlib import Path
from typing import Any

from ordered_events import secrets
from ordered_events.store.protocol import (
    BREAK_KEY,
    BREAK_LOG_KEY,
    DEAD_LETTER_KEY,
    FAILURES_KEY,
    Store,
    StoreError,
    Transaction,
)
from ordered_events.store.redis_store import RedisStore
from ordered_events.store.sqlite_store import SqliteStore

__all__ = [
    "BREAK_KEY",
    "BREAK_LOG_KEY",
    "DEAD_LETTER_KEY",
    "FAILURES_KEY",
    "RedisStore",
    "SqliteStore",
    "Store",
    "StoreError",
    "Transaction",
    "open_store",
]


def open_store(settings: dict[str, Any], project_root: Path) -> Store:
    """Build the store named by settings['store']['backend']."""
    cfg = settings.get("store", {})
    backend = cfg.get("backend", "sqlite")
    if backend == "sqlite":
        return SqliteStore(
            project_root / cfg.get("db_path", "data/shared_store.db"),
            busy_timeout=cfg.get("busy_timeout", 5000),
        )
    if backend == "redis":
        secret_name = cfg.get("redis_url_secret", "REDIS_URL")
        url = secrets.get_secret(secret_name)
        if not url:
            raise StoreError(f"Redis backend selected but secret {secret_name!r} is not set")
        return RedisStore(url)
    raise StoreError(f"Unknown store backend {backend!r}")
