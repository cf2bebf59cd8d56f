"""Utility helpers for mysql-getlock."""

from .locks import LockLogAdapter, LockSnapshot, LockStats, collect_lock_warnings, log_head

__all__ = ["LockLogAdapter", "LockStats", "collect_lock_warnings", "LockSnapshot", "log_head"]
