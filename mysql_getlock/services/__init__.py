"""Service layer exports."""

from .capabilities import detect_capabilities, parse_server_version
from .lock_client import LockClient
from .session_registry import SessionRegistry, session_registry

__all__ = [
    "LockClient",
    "SessionRegistry",
    "detect_capabilities",
    "parse_server_version",
    "session_registry",
]
