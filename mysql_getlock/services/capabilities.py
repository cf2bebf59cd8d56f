"""Server version detection and the named-lock capabilities it implies."""
from __future__ import annotations

import logging
import re
from typing import Any

from mysql_getlock.core.exceptions import ConfigurationError
from mysql_getlock.core.types import LockConnection, ServerCapabilities, ServerVersion
from mysql_getlock.services.statements import SERVER_VERSION

logger = logging.getLogger(__name__)

# From MySQL 5.7.5 a session may hold several named locks at once.
MULTIPLE_LOCKS_SINCE = ServerVersion(5, 7, 5)
# From MySQL 5.5.8 a negative GET_LOCK timeout means "wait forever".
INFINITE_TIMEOUT_SINCE = ServerVersion(5, 5, 8)

_VERSION_PATTERN = re.compile(r"^\s*(\d+)\.(\d+)\.(\d+)")


def parse_server_version(raw: Any) -> ServerVersion:
    """Parse the leading ``major.minor.patch`` of a ``VERSION()`` string.

    Suffixes such as ``-log`` or ``-MariaDB`` are ignored. Anything that does
    not start with three dotted integers raises :class:`ConfigurationError`.
    """

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raise ConfigurationError(f"Server version {raw!r} is not a version string")

    match = _VERSION_PATTERN.match(raw)
    if not match:
        raise ConfigurationError(f"Unable to parse server version {raw!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return ServerVersion(major, minor, patch)


def capabilities_for(version: ServerVersion) -> ServerCapabilities:
    return ServerCapabilities(
        version=version,
        multiple_lockable=version >= MULTIPLE_LOCKS_SINCE,
        infinite_timeout_capable=version >= INFINITE_TIMEOUT_SINCE,
    )


def detect_capabilities(connection: LockConnection) -> ServerCapabilities:
    """Query the server version once and derive its named-lock capabilities."""

    raw = connection.execute(SERVER_VERSION).scalar()
    capabilities = capabilities_for(parse_server_version(raw))
    logger.debug(
        "Detected server version %s",
        capabilities.version,
        extra={
            "multiple_lockable": capabilities.multiple_lockable,
            "infinite_timeout_capable": capabilities.infinite_timeout_capable,
        },
    )
    return capabilities
