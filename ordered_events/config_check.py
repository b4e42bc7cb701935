"""Settings validation run before the worker starts."""

from typing import Any

from ordered_events import secrets
from ordered_events.settings import get_setting

_BACKENDS = ("sqlite", "redis")


def _positive_int(settings: dict[str, Any], path: str, minimum: int = 1) -> str | None:
    value = get_setting(settings, path)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        return f"{path} must be an integer >= {minimum}, got {value!r}"
    return None


def check_settings(settings: dict[str, Any]) -> tuple[bool, str]:
    """Check whether settings are sufficient to start a worker. Returns (ok, reason)."""
    backend = get_setting(settings, "store.backend")
    if backend not in _BACKENDS:
        return False, f"store.backend must be one of {', '.join(_BACKENDS)}, got {backend!r}"
    if backend == "redis":
        secret = get_setting(settings, "store.redis_url_secret") or "REDIS_URL"
        if not secrets.get_secret(secret):
            return False, f"Redis backend selected but secret {secret!r} is not set"

    for path, minimum in (
        ("breaker.failure_seconds", 1),
        ("breaker.failure_threshold", 1),
        ("processing.max_retries", 0),
        ("source.batch_size", 1),
    ):
        error = _positive_int(settings, path, minimum)
        if error:
            return False, error

    endpoint = get_setting(settings, "alerts.endpoint") or ""
    if endpoint and not endpoint.startswith(("http://", "https://")):
        return False, f"alerts.endpoint must be an http(s) URL, got {endpoint!r}"
    return True, "ok"
