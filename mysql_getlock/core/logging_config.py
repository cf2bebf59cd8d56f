"""Logging configuration for mysql-getlock."""
from __future__ import annotations

import copy
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional


LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "loggers": {
        "mysql_getlock": {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False,
        }
    },
}


def configure_logging(level: Optional[str] = None) -> None:
    """Apply logging configuration to the ``mysql_getlock`` logger tree."""

    from mysql_getlock.core.config import settings

    config = copy.deepcopy(LOGGING_CONFIG)
    package_logger = config["loggers"]["mysql_getlock"]
    package_logger["level"] = (level or settings.log_level).upper()

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        config.setdefault("handlers", {})["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "filename": str(log_dir / "mysql_getlock.log"),
            "maxBytes": settings.log_max_bytes,
            "backupCount": settings.log_backup_count,
        }
        package_logger["handlers"].append("file")

    logging.config.dictConfig(config)
