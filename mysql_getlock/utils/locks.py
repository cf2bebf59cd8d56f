"""Named-lock instrumentation utilities."""
from __future__ import annotations

import logging
import os
import threading
import time
import weakref
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, List, MutableMapping, Optional, Tuple

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def log_head() -> str:
    """Return the ``PID-<pid> TID-<thread>: `` prefix for lock log lines."""

    return f"PID-{os.getpid()} TID-{_to_base36(threading.get_ident())}: "


class LockLogAdapter(logging.LoggerAdapter):
    """Prefix messages with the process/thread head and tag them with the lock key."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"{log_head()}{msg}", kwargs


@dataclass
class LockSnapshot:
    """Metrics captured for a single named lock client."""

    name: str
    locked: bool
    max_wait_seconds: float
    current_waiters: int
    hold_duration_seconds: Optional[float]


class LockRegistry:
    """Registry that tracks live lock statistics for health diagnostics."""

    _stats: "weakref.WeakSet[LockStats]" = weakref.WeakSet()
    _mutex = threading.Lock()

    @classmethod
    def register(cls, stats: "LockStats") -> None:
        with cls._mutex:
            cls._stats.add(stats)

    @classmethod
    def snapshots(cls) -> List[LockSnapshot]:
        now = time.monotonic()
        with cls._mutex:
            tracked = list(cls._stats)
        return [stats.snapshot(now) for stats in tracked]


class LockStats:
    """Wait/hold instrumentation for one lock client."""

    __slots__ = (
        "_name",
        "_mutex",
        "_wait_times",
        "_max_wait",
        "_waiting",
        "_acquired_at",
        "__weakref__",
    )

    def __init__(self, name: str) -> None:
        self._name = name
        self._mutex = threading.Lock()
        self._wait_times: Deque[float] = deque(maxlen=100)
        self._max_wait = 0.0
        self._waiting = 0
        self._acquired_at: Optional[float] = None
        LockRegistry.register(self)

    @property
    def name(self) -> str:
        return self._name

    @property
    def wait_times(self) -> List[float]:
        with self._mutex:
            return list(self._wait_times)

    def wait_started(self) -> float:
        with self._mutex:
            self._waiting += 1
        return time.monotonic()

    def wait_finished(self, started: float, *, acquired: bool) -> None:
        waited = time.monotonic() - started
        with self._mutex:
            self._waiting -= 1
            self._wait_times.append(waited)
            if waited > self._max_wait:
                self._max_wait = waited
            if acquired:
                self._acquired_at = time.monotonic()

    def released(self) -> None:
        with self._mutex:
            self._acquired_at = None

    def snapshot(self, now: Optional[float] = None) -> LockSnapshot:
        if now is None:
            now = time.monotonic()
        with self._mutex:
            hold_duration = None
            if self._acquired_at is not None:
                hold_duration = max(0.0, now - self._acquired_at)
            return LockSnapshot(
                name=self._name,
                locked=self._acquired_at is not None,
                max_wait_seconds=self._max_wait,
                current_waiters=self._waiting,
                hold_duration_seconds=hold_duration,
            )


def collect_lock_warnings(
    *, wait_threshold: Optional[float] = None, hold_threshold: Optional[float] = None
) -> List[str]:
    """Return warning messages for locks breaching contention thresholds."""

    from mysql_getlock.core.config import settings

    if wait_threshold is None:
        wait_threshold = settings.lock_wait_warning_seconds
    if hold_threshold is None:
        hold_threshold = settings.lock_hold_warning_seconds

    warnings: List[str] = []
    for snapshot in LockRegistry.snapshots():
        if snapshot.max_wait_seconds > wait_threshold:
            warnings.append(
                f"{snapshot.name} wait exceeded {wait_threshold:.2f}s (max {snapshot.max_wait_seconds:.2f}s)"
            )
        if (
            snapshot.locked
            and snapshot.hold_duration_seconds is not None
            and snapshot.hold_duration_seconds > hold_threshold
        ):
            warnings.append(
                f"{snapshot.name} held for {snapshot.hold_duration_seconds:.2f}s"
            )
    return warnings


__all__ = ["LockLogAdapter", "LockRegistry", "LockSnapshot", "LockStats", "collect_lock_warnings", "log_head"]
