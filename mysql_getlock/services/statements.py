"""SQL statements for MySQL's named-lock functions."""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import text

GET_LOCK = text("SELECT GET_LOCK(:key, :timeout)")
RELEASE_LOCK = text("SELECT RELEASE_LOCK(:key)")
IS_USED_LOCK = text("SELECT IS_USED_LOCK(:key)")
SERVER_VERSION = text("SELECT VERSION()")
CONNECTION_ID = text("SELECT CONNECTION_ID()")


def scalar_int(value: Any) -> Optional[int]:
    """Interpret a first-column value as an integer, ``None`` when absent or unreadable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
