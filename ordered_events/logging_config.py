"""Centralized logging configuration for the worker process."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any

# Chatty third-party loggers kept at WARNING unless the root level is DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _file_handler(project_root: Path, cfg: dict[str, Any], level: int) -> logging.Handler:
    log_path = project_root / cfg.get("file", "data/logs/worker.log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    h = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("backup_count", 3)),
        encoding="utf-8",
    )
    h.setLevel(level)
    return h


def setup_logging(project_root: Path, settings: dict[str, Any]) -> None:
    """Configure the root logger from settings['logging'].

    Always logs to a rotating file; console output is on by default since
    workers usually run under a process manager that collects stderr."""
    cfg = settings.get("logging", {})
    level = getattr(logging, str(cfg.get("level", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    handlers = [_file_handler(project_root, cfg, level)]
    if cfg.get("log_to_console", True):
        console = logging.StreamHandler()
        console.setLevel(level)
        handlers.append(console)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
