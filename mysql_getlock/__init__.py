"""Cooperative cross-process mutexes built on MySQL named locks."""

from mysql_getlock.core.database import connection_scope, create_lock_engine, named_lock
from mysql_getlock.core.exceptions import (
    ConfigurationError,
    GetLockError,
    LockingError,
    SameConnectionConflictError,
)
from mysql_getlock.services.lock_client import LockClient
from mysql_getlock.services.normalizer import INFINITE_TIMEOUT_SENTINEL
from mysql_getlock.services.session_registry import SessionRegistry, session_registry

__version__ = "0.4.0"

__all__ = [
    "ConfigurationError",
    "GetLockError",
    "INFINITE_TIMEOUT_SENTINEL",
    "LockClient",
    "LockingError",
    "SameConnectionConflictError",
    "SessionRegistry",
    "connection_scope",
    "create_lock_engine",
    "named_lock",
    "session_registry",
]
