"""Database engine and dedicated lock connection helpers."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine

from mysql_getlock.core.config import settings
from mysql_getlock.core.exceptions import ConfigurationError
from mysql_getlock.services.lock_client import LockClient

logger = logging.getLogger(__name__)


def create_lock_engine(url: Optional[str] = None, **overrides: Any) -> Engine:
    """Create an engine suitable for holding named locks.

    Named locks live as long as the session that took them, so callers
    should hold a lock on one checked-out connection for its whole lifetime.
    """

    url = url or settings.database_url
    if not url:
        raise ConfigurationError("GETLOCK_DATABASE_URL must be set to create a lock engine")

    if url.startswith("sqlite"):
        options: dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "echo": settings.debug,
        }
    else:
        options = {
            "pool_pre_ping": settings.pool_pre_ping,
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_recycle": settings.pool_recycle,
            "echo": settings.debug,
        }
    options.update(overrides)
    engine = create_engine(url, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):  # pragma: no cover - instrumentation
        logger.debug("Database connection established")

    @event.listens_for(engine, "close")
    def _on_close(dbapi_conn, connection_record):  # pragma: no cover - instrumentation
        logger.debug("Database connection closed; its named locks are released by the server")

    return engine


@lru_cache
def get_engine() -> Engine:
    """Return the cached engine for ``settings.database_url``."""

    return create_lock_engine()


@contextmanager
def connection_scope(engine: Optional[Engine] = None) -> Generator[Connection, None, None]:
    """Yield a dedicated connection, rolling back any open transaction on exit."""

    connection = (engine or get_engine()).connect()
    try:
        yield connection
    except Exception as exc:
        logger.error("Lock connection aborted", extra={"error": str(exc)})
        raise
    finally:
        try:
            if connection.in_transaction():
                connection.rollback()
        finally:
            connection.close()


@contextmanager
def named_lock(
    key: str,
    *,
    timeout: Optional[float] = None,
    engine: Optional[Engine] = None,
    logger: Optional[logging.Logger] = None,
) -> Generator[LockClient, None, None]:
    """Hold ``key`` on a dedicated connection for the duration of the block.

    Raises :class:`~mysql_getlock.core.exceptions.LockingError` when the lock
    cannot be acquired within ``timeout`` seconds.
    """

    with connection_scope(engine) as connection:
        client = LockClient(connection, key, logger=logger, timeout=timeout)
        with client.held():
            yield client
