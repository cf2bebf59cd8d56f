"""Shared type definitions for mysql-getlock."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Protocol


class ScalarResult(Protocol):
    """Result object returned by :meth:`LockConnection.execute`."""

    def scalar(self) -> Any:
        """Return the first column of the first row, or ``None``."""


class LockConnection(Protocol):
    """Anything that executes SQLAlchemy statements, e.g. ``Connection`` or ``Session``."""

    def execute(self, statement: Any, parameters: Optional[Mapping[str, Any]] = None) -> ScalarResult:
        """Execute ``statement`` and return its result."""


class ServerVersion(NamedTuple):
    """Numeric server version, ordered as a tuple."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class ServerCapabilities:
    """Named-lock behaviour derived from a server version."""

    version: ServerVersion
    multiple_lockable: bool
    infinite_timeout_capable: bool
