import itertools
import sys
import threading
from collections.abc import Generator
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import NullPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mysql_getlock.core.database import create_lock_engine
from mysql_getlock.services.session_registry import SessionRegistry


def _version_tuple(version: str) -> tuple[int, ...]:
    head = version.split("-", 1)[0]
    return tuple(int(part) for part in head.split(".")[:3])


class FakeNamedLockServer:
    """In-process stand-in for MySQL's named-lock functions.

    Each attached SQLite connection gets its own connection id. Servers
    older than 5.7.5 release a session's previous lock on a new GET_LOCK,
    and servers older than 5.5.8 treat a negative timeout as "do not wait".
    """

    def __init__(self, version: str = "8.0.36") -> None:
        self.version = version
        self.calls: list[tuple[Any, ...]] = []
        self.null_functions: set[str] = set()
        self._condition = threading.Condition()
        self._holders: dict[str, list[int]] = {}
        self._ids = itertools.count(1)

    def attach(self, dbapi_conn: Any) -> int:
        connection_id = next(self._ids)
        dbapi_conn.create_function(
            "get_lock", 2, lambda key, timeout: self.get_lock(connection_id, key, timeout)
        )
        dbapi_conn.create_function("release_lock", 1, lambda key: self.release_lock(connection_id, key))
        dbapi_conn.create_function("is_used_lock", 1, self.is_used_lock)
        dbapi_conn.create_function("connection_id", 0, lambda: connection_id)
        dbapi_conn.create_function("version", 0, self.server_version)
        return connection_id

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def server_version(self) -> str:
        self.calls.append(("version",))
        return self.version

    def get_lock(self, connection_id: int, key: str, timeout: float) -> Optional[int]:
        self.calls.append(("get_lock", connection_id, key, timeout))
        if "get_lock" in self.null_functions:
            return None
        version = _version_tuple(self.version)
        if timeout < 0:
            wait: Optional[float] = None if version >= (5, 5, 8) else 0
        else:
            wait = timeout

        with self._condition:
            if version < (5, 7, 5):
                self._release_all_locked(connection_id, keep=key)
            holder = self._holders.get(key)
            if holder is not None and holder[0] == connection_id:
                if version >= (5, 7, 5):
                    holder[1] += 1
                return 1
            if not self._condition.wait_for(lambda: key not in self._holders, timeout=wait):
                return 0
            self._holders[key] = [connection_id, 1]
            return 1

    def release_lock(self, connection_id: int, key: str) -> Optional[int]:
        self.calls.append(("release_lock", connection_id, key))
        if "release_lock" in self.null_functions:
            return None
        with self._condition:
            holder = self._holders.get(key)
            if holder is None:
                return None
            if holder[0] != connection_id:
                return 0
            holder[1] -= 1
            if holder[1] == 0:
                del self._holders[key]
                self._condition.notify_all()
            return 1

    def is_used_lock(self, key: str) -> Optional[int]:
        self.calls.append(("is_used_lock", key))
        with self._condition:
            holder = self._holders.get(key)
            return None if holder is None else holder[0]

    def release_all(self, connection_id: Optional[int]) -> None:
        with self._condition:
            self._release_all_locked(connection_id)

    def _release_all_locked(self, connection_id: Optional[int], keep: Optional[str] = None) -> None:
        released = [
            key
            for key, holder in self._holders.items()
            if holder[0] == connection_id and key != keep
        ]
        for key in released:
            del self._holders[key]
        if released:
            self._condition.notify_all()


class ScriptedConnection:
    """Connection double answering each named-lock statement from a script."""

    def __init__(self, version: Any = "8.0.36", connection_id: int = 7, **results: Any) -> None:
        self.version = version
        self.connection_id = connection_id
        self.results = {"get_lock": 1, "release_lock": 1, "is_used_lock": None, **results}
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.error: Optional[Exception] = None

    def execute(self, statement: Any, parameters: Optional[dict[str, Any]] = None) -> SimpleNamespace:
        sql = str(statement)
        self.executed.append((sql, dict(parameters or {})))
        if "VERSION()" in sql:
            value = self.version
        elif "CONNECTION_ID()" in sql:
            value = self.connection_id
        else:
            if self.error is not None:
                raise self.error
            if "RELEASE_LOCK" in sql:
                value = self.results["release_lock"]
            elif "IS_USED_LOCK" in sql:
                value = self.results["is_used_lock"]
            elif "GET_LOCK" in sql:
                value = self.results["get_lock"]
            else:  # pragma: no cover - guards against unexpected statements
                raise AssertionError(f"Unexpected statement {sql}")
        return SimpleNamespace(scalar=lambda: value)

    def statements(self, fragment: str) -> list[tuple[str, dict[str, Any]]]:
        return [entry for entry in self.executed if fragment in entry[0]]


@pytest.fixture()
def registry() -> SessionRegistry:
    """Provide a session registry isolated from the process-wide one."""

    return SessionRegistry()


@pytest.fixture()
def lock_server() -> FakeNamedLockServer:
    return FakeNamedLockServer()


@pytest.fixture()
def legacy_lock_server(lock_server: FakeNamedLockServer) -> FakeNamedLockServer:
    lock_server.version = "5.5.40-log"
    return lock_server


@pytest.fixture()
def lock_engine(lock_server: FakeNamedLockServer) -> Generator[Engine, None, None]:
    """Engine whose every connection talks to ``lock_server``."""

    engine = create_lock_engine("sqlite://", poolclass=NullPool)

    @event.listens_for(engine, "connect")
    def _attach(dbapi_conn, connection_record):
        connection_record.info["fake_connection_id"] = lock_server.attach(dbapi_conn)

    @event.listens_for(engine, "close")
    def _detach(dbapi_conn, connection_record):
        lock_server.release_all(connection_record.info.get("fake_connection_id"))

    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def connection(lock_engine: Engine) -> Generator[Connection, None, None]:
    with lock_engine.connect() as conn:
        yield conn


@pytest.fixture()
def other_connection(lock_engine: Engine) -> Generator[Connection, None, None]:
    with lock_engine.connect() as conn:
        yield conn


@pytest.fixture()
def scripted() -> type[ScriptedConnection]:
    """Factory for connection doubles with scripted named-lock answers."""

    return ScriptedConnection
