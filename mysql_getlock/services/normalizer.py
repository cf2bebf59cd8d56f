"""Validation of lock keys and translation of timeouts per server capability."""
from __future__ import annotations

import numbers
from typing import Any, Union

from mysql_getlock.core.config import settings

# Largest GET_LOCK timeout older servers accept; stands in for "forever".
INFINITE_TIMEOUT_SENTINEL = 4294967295

Timeout = Union[int, float]


def normalize_key(key: Any) -> str:
    """Validate a lock name once; it is sent as a bound parameter afterwards."""

    if not isinstance(key, str):
        raise ValueError(f"Lock key must be a string, got {type(key).__name__}")
    if not key:
        raise ValueError("Lock key must not be empty")
    if len(key) > settings.max_key_length:
        raise ValueError(
            f"Lock key {key!r} exceeds the maximum length of {settings.max_key_length} characters"
        )
    return key


def validate_timeout(timeout: Any) -> Timeout:
    if isinstance(timeout, bool) or not isinstance(timeout, numbers.Real):
        raise TypeError(f"Lock timeout must be a number of seconds, got {timeout!r}")
    return timeout


def normalize_timeout(timeout: Timeout, *, infinite_timeout_capable: bool) -> Timeout:
    """Return the timeout to send for a server with the given capability."""

    if timeout < 0 and not infinite_timeout_capable:
        return INFINITE_TIMEOUT_SENTINEL
    return timeout
