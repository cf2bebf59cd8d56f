"""Process-wide bookkeeping of the key held on each single-lock connection."""
from __future__ import annotations

import threading
import weakref
from typing import Any, Dict, Optional


def identity_of(connection: Any) -> int:
    """Return the identity of ``connection``, stable for the object's lifetime."""

    return id(connection)


class SessionRegistry:
    """Thread-safe mapping of connection identity to the key it holds.

    Servers before MySQL 5.7.5 silently release a session's lock when the
    same session issues another ``GET_LOCK``. The registry lets clients
    sharing one connection refuse such requests up front. It is advisory:
    the server remains the authority on who actually holds a lock.

    Identities are reused once a connection object is freed, so entries
    recorded with an ``owner`` are dropped when that object is collected.
    """

    def __init__(self) -> None:
        self._keys: Dict[int, str] = {}
        self._finalizers: Dict[int, weakref.finalize] = {}
        self._mutex = threading.RLock()

    def get(self, identity: int) -> Optional[str]:
        with self._mutex:
            return self._keys.get(identity)

    def set(self, identity: int, key: str, *, owner: Any = None) -> None:
        with self._mutex:
            self._keys[identity] = key
            if owner is None or identity in self._finalizers:
                return
            try:
                self._finalizers[identity] = weakref.finalize(owner, self._forget, identity)
            except TypeError:
                # Objects without weakref support keep their entry until deleted.
                pass

    def delete(self, identity: int) -> None:
        with self._mutex:
            self._keys.pop(identity, None)
            finalizer = self._finalizers.pop(identity, None)
        if finalizer is not None:
            finalizer.detach()

    def clear(self) -> None:
        with self._mutex:
            self._keys.clear()
            finalizers = list(self._finalizers.values())
            self._finalizers.clear()
        for finalizer in finalizers:
            finalizer.detach()

    def snapshot(self) -> Dict[int, str]:
        with self._mutex:
            return dict(self._keys)

    def __len__(self) -> int:
        with self._mutex:
            return len(self._keys)

    def _forget(self, identity: int) -> None:
        with self._mutex:
            self._keys.pop(identity, None)
            self._finalizers.pop(identity, None)


session_registry = SessionRegistry()
