"""Cooperative mutex built on MySQL named locks."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from mysql_getlock.core.config import settings
from mysql_getlock.core.exceptions import LockingError, SameConnectionConflictError
from mysql_getlock.core.types import LockConnection, ServerCapabilities, ServerVersion
from mysql_getlock.services.capabilities import detect_capabilities
from mysql_getlock.services.normalizer import (
    Timeout,
    normalize_key,
    normalize_timeout,
    validate_timeout,
)
from mysql_getlock.services.session_registry import SessionRegistry, identity_of, session_registry
from mysql_getlock.services.statements import (
    CONNECTION_ID,
    GET_LOCK,
    IS_USED_LOCK,
    RELEASE_LOCK,
    scalar_int,
)
from mysql_getlock.utils.locks import LockLogAdapter, LockSnapshot, LockStats

T = TypeVar("T")


class LockClient:
    """Acquire, release and inspect one named lock over one connection.

    Several clients may share a connection. On servers older than MySQL
    5.7.5 a session can only hold one named lock, so clients consult a
    shared :class:`SessionRegistry` and refuse to request a second key on a
    connection that already holds another one.

    Example::

        with engine.connect() as connection:
            client = LockClient(connection, "job-42", timeout=5)
            client.synchronize(run_job)
    """

    def __init__(
        self,
        connection: LockConnection,
        key: str,
        logger: Optional[logging.Logger] = None,
        timeout: Optional[Timeout] = None,
        *,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        self._key = normalize_key(key)
        self._timeout = validate_timeout(settings.default_timeout if timeout is None else timeout)
        self._registry = registry if registry is not None else session_registry
        self._log = LockLogAdapter(logger or logging.getLogger(__name__), {"lock_key": self._key})
        self._stats = LockStats(self._key)
        self._capabilities: Optional[ServerCapabilities] = None
        self.connection = connection

    @property
    def connection(self) -> LockConnection:
        return self._connection

    @connection.setter
    def connection(self, connection: LockConnection) -> None:
        """Rebind to a new connection, e.g. after reconnecting.

        Cached server facts belong to the previous connection and are dropped.
        """

        self._connection = connection
        self._capabilities = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def timeout(self) -> Timeout:
        return self._timeout

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def capabilities(self) -> ServerCapabilities:
        if self._capabilities is None:
            self._capabilities = detect_capabilities(self._connection)
        return self._capabilities

    @property
    def server_version(self) -> ServerVersion:
        return self.capabilities.version

    @property
    def multiple_lockable(self) -> bool:
        return self.capabilities.multiple_lockable

    @property
    def infinite_timeout_capable(self) -> bool:
        return self.capabilities.infinite_timeout_capable

    @property
    def stats(self) -> LockSnapshot:
        return self._stats.snapshot()

    def lock(self) -> bool:
        """Wait up to ``timeout`` seconds for the lock; return whether it was acquired."""

        current = self._conflicting_session_key()
        if current is not None:
            raise SameConnectionConflictError(
                f"get_lock() is already issued in the same connection for '{current}'",
                held_key=current,
                requested_key=self._key,
            )

        timeout = normalize_timeout(
            self._timeout, infinite_timeout_capable=self.infinite_timeout_capable
        )
        self._log.info("Wait acquiring a mysql lock '%s'", self._key, extra={"timeout": timeout})
        started = self._stats.wait_started()
        acquired = False
        try:
            result = scalar_int(
                self._connection.execute(GET_LOCK, {"key": self._key, "timeout": timeout}).scalar()
            )
            acquired = result == 1
        finally:
            self._stats.wait_finished(started, acquired=acquired)

        if acquired:
            self._log.info("Acquired a mysql lock '%s'", self._key)
            if not self.multiple_lockable:
                self._registry.set(self._identity(), self._key, owner=self._connection)
            return True

        if result == 0:
            self._log.info("Timeout to acquire a mysql lock '%s'", self._key)
        else:
            self._log.info("Unknown Error to acquire a mysql lock '%s'", self._key, extra={"result": result})
        self._registry.delete(self._identity())
        return False

    def unlock(self) -> bool:
        """Release the lock; ``False`` only when another connection holds it."""

        current = self._conflicting_session_key()
        if current is not None:
            raise SameConnectionConflictError(
                f"get_lock() was issued for another key '{current}', please unlock it beforehand",
                held_key=current,
                requested_key=self._key,
            )

        try:
            result = scalar_int(self._connection.execute(RELEASE_LOCK, {"key": self._key}).scalar())
        finally:
            self._registry.delete(self._identity())

        if result == 1:
            self._stats.released()
            self._log.info("Released a mysql lock '%s'", self._key)
            return True
        if result == 0:
            self._log.info(
                "Failed to release a mysql lock since somebody else locked '%s'", self._key
            )
            return False
        self._stats.released()
        self._log.info("Mysql lock did not exist '%s'", self._key)
        return True

    def locked(self) -> bool:
        """Return whether any connection currently holds the lock."""

        return self._owner_connection_id() is not None

    def self_locked(self) -> Optional[bool]:
        """Return whether this connection holds the lock, ``None`` when nobody does."""

        owner = self._owner_connection_id()
        if owner is None:
            return None
        own_id = scalar_int(self._connection.execute(CONNECTION_ID).scalar())
        return owner == own_id

    @contextmanager
    def held(self) -> Iterator["LockClient"]:
        """Hold the lock for the duration of the ``with`` block.

        Raises :class:`LockingError` without running the block when the lock
        cannot be acquired. The lock is released on every exit path.
        """

        self._acquire_or_raise()
        try:
            yield self
        finally:
            self.unlock()

    def synchronize(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``func`` while holding the lock and return its result."""

        with self.held():
            return func(*args, **kwargs)

    def __enter__(self) -> "LockClient":
        self._acquire_or_raise()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unlock()

    def __repr__(self) -> str:
        return f"<LockClient key={self._key!r} timeout={self._timeout!r}>"

    def _identity(self) -> int:
        return identity_of(self._connection)

    def _acquire_or_raise(self) -> None:
        if not self.lock():
            raise LockingError(
                f"Unable to acquire a mysql lock '{self._key}' within {self._timeout} seconds",
                key=self._key,
                timeout=self._timeout,
            )

    def _conflicting_session_key(self) -> Optional[str]:
        """Return the conflicting key recorded for this connection, if any."""

        if self.multiple_lockable:
            return None
        current = self._registry.get(self._identity())
        if current is not None and current != self._key:
            return current
        return None

    def _owner_connection_id(self) -> Optional[int]:
        return scalar_int(self._connection.execute(IS_USED_LOCK, {"key": self._key}).scalar())
