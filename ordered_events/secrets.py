"""Connection secrets (store URL, alert topic key) via OS keyring, falling back to env."""

import logging
import os

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)
SERVICE_NAME = "ordered-events"


def get_secret(name: str) -> str | None:
    """Resolve secret: keyring -> os.environ."""
    try:
        value = keyring.get_password(SERVICE_NAME, name)
        if value:
            return value
    except KeyringError:
        logger.debug("keyring lookup failed for %s, falling back to env", name)
    return os.environ.get(name)


def set_secret(name: str, value: str) -> None:
    """Store secret in OS keyring. Raises KeyringError if backend unavailable."""
    keyring.set_password(SERVICE_NAME, name, value)
