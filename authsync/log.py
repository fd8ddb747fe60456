"""Logging utilities for authsync.

Components log under the ``authsync`` namespace. Request payloads pass
through ``redact_sensitive_data`` before they reach a log line.
"""

from __future__ import annotations

import functools
import logging
import sys

from typing import Any


LOGGER_NAME = "authsync"

# Lower-cased fragments of the body fields and headers the backend
# exchanges that carry credentials: the callback ``secret``, account
# ``password``, ``providerAccessToken``/``providerRefreshToken``,
# ``X-Fallback-Cookies`` and ``X-Appwrite-Dev-Key``.
_SENSITIVE_FRAGMENTS = ("secret", "password", "token", "cookie", "dev-key")

_REDACTED = "[REDACTED]"


@functools.cache
def get_logger() -> logging.Logger:
    """Return the ``authsync`` logger, configured from ``LogSettings``.

    The level and format are read once; ``get_logger.cache_clear()``
    makes the next call read them again.
    """
    from .config import get_settings

    log_settings = get_settings().log
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_settings.level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_settings.format))
        logger.addHandler(handler)
    return logger


def set_level(level: int | str) -> None:
    """Set the authsync logging level (``logging.DEBUG`` or ``"debug"``)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Enable verbose logging of backend calls and state transitions."""
    set_level(logging.DEBUG)


def _is_sensitive(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in _SENSITIVE_FRAGMENTS)


def redact_sensitive_data(data: Any, max_depth: int = 5) -> Any:
    """Copy ``data`` with credential-bearing values replaced.

    Parameters
    ----------
    data : Any
        A request body, header map or list of them. Other values are
        returned unchanged.
    max_depth : int
        Nesting depth after which values are replaced by ``"[MAX_DEPTH]"``.

    Returns
    -------
    Any
        The redacted copy.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"
    if isinstance(data, dict):
        return {
            k: _REDACTED if _is_sensitive(k) else redact_sensitive_data(v, max_depth - 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]
    return data
