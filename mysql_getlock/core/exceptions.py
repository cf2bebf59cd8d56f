"""Custom exception hierarchy for mysql-getlock."""
from __future__ import annotations


class GetLockError(Exception):
    """Base exception for all mysql-getlock errors."""


class ConfigurationError(GetLockError):
    """Configuration or server environment errors."""


class SameConnectionConflictError(GetLockError):
    """Another key is already claimed on a connection that allows one lock."""

    def __init__(self, message: str, *, held_key: str, requested_key: str) -> None:
        super().__init__(message)
        self.held_key = held_key
        self.requested_key = requested_key


class LockingError(GetLockError):
    """A lock required for a critical section could not be acquired."""

    def __init__(self, message: str, *, key: str, timeout: float) -> None:
        super().__init__(message)
        self.key = key
        self.timeout = timeout
