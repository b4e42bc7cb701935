"""Load worker settings from config/settings.yaml, with environment overrides."""

import os
from pathlib import Path
from typing import Any

import yaml

_DEFAULTS: dict[str, Any] = {
    "store": {
        # "sqlite" shares one database file between workers on a host;
        # "redis" shares a server between workers anywhere.
        "backend": "sqlite",
        "db_path": "data/shared_store.db",
        "redis_url_secret": "REDIS_URL",
        "busy_timeout": 5000,
    },
    "breaker": {
        "failure_seconds": 60,
        "failure_threshold": 10,
    },
    "processing": {
        "max_retries": 3,
        "retry_delay": 0.0,
        "fail_every": 100,
    },
    "dead_letter": {
        "key": "deadletter",
    },
    "alerts": {
        "endpoint": "",
        "key_secret": "ALERT_TOPIC_KEY",
        "subject": "Alert/Break",
        "timeout": 10.0,
    },
    "source": {
        "db_path": "data/inbox.db",
        "poll_interval": 1.0,
        "batch_size": 10,
        "stale_timeout": 300,
    },
    "logging": {
        "file": "data/logs/worker.log",
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

# Variable names used by earlier deployments of the worker.
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "FailureSeconds": ("breaker.failure_seconds", int),
    "FailureThreshold": ("breaker.failure_threshold", int),
    "EventGridEndpoint": ("alerts.endpoint", str),
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _deep_copy_nested(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'breaker.failure_seconds')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _set_path(settings: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    current = settings
    for part in parents:
        current = current.setdefault(part, {})
    current[leaf] = value


def apply_env_overrides(settings: dict[str, Any], env: dict[str, str] | None = None) -> dict[str, Any]:
    """Apply environment overrides in place. Unparseable values raise ValueError."""
    env = os.environ if env is None else env
    for name, (path, cast) in _ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or raw == "":
            continue
        try:
            _set_path(settings, path, cast(raw))
        except ValueError as e:
            raise ValueError(f"Environment variable {name}={raw!r} is not a valid {cast.__name__}") from e
    return settings


def reload_settings() -> None:
    """Clear the settings cache."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns defaults + file values + env overrides."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()
    if path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            _deep_merge(result, data)

    apply_env_overrides(result)
    _cached = result
    return result
