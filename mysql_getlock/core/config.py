"""Application configuration management."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Optional, Union

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.engine import make_url

load_dotenv(find_dotenv(usecwd=True))

logger = logging.getLogger(__name__)

LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseModel):
    """Runtime configuration values for mysql-getlock."""

    debug: bool = Field(False, validation_alias="GETLOCK_DEBUG")
    database_url: Optional[str] = Field(None, validation_alias="GETLOCK_DATABASE_URL")

    default_timeout: Union[int, float] = Field(-1, validation_alias="GETLOCK_DEFAULT_TIMEOUT")
    max_key_length: int = Field(64, validation_alias="GETLOCK_MAX_KEY_LENGTH", ge=1)

    log_level: str = Field("INFO", validation_alias="GETLOCK_LOG_LEVEL")
    log_dir: Optional[str] = Field(None, validation_alias="GETLOCK_LOG_DIR")
    log_max_bytes: int = Field(10 * 1024 * 1024, validation_alias="GETLOCK_LOG_MAX_BYTES", gt=0)
    log_backup_count: int = Field(5, validation_alias="GETLOCK_LOG_BACKUP_COUNT", ge=0)

    lock_wait_warning_seconds: float = Field(
        2.0,
        validation_alias="GETLOCK_LOCK_WAIT_WARNING_SECONDS",
        ge=0,
    )
    lock_hold_warning_seconds: float = Field(
        10.0,
        validation_alias="GETLOCK_LOCK_HOLD_WARNING_SECONDS",
        ge=0,
    )

    pool_size: int = Field(5, validation_alias="GETLOCK_POOL_SIZE", ge=1)
    max_overflow: int = Field(10, validation_alias="GETLOCK_MAX_OVERFLOW", ge=0)
    pool_recycle: int = Field(3600, validation_alias="GETLOCK_POOL_RECYCLE")
    pool_pre_ping: bool = Field(True, validation_alias="GETLOCK_POOL_PRE_PING")

    class Config:
        populate_by_name = True

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        try:
            make_url(value)
        except Exception as exc:
            raise ValueError(f"GETLOCK_DATABASE_URL is invalid: {exc}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalised = value.strip().upper()
        if normalised not in LOG_LEVELS:
            raise ValueError(f"GETLOCK_LOG_LEVEL must be one of {', '.join(sorted(LOG_LEVELS))}")
        return normalised

    @field_validator("default_timeout", mode="before")
    @classmethod
    def reject_boolean_timeout(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("GETLOCK_DEFAULT_TIMEOUT must be a number of seconds")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance built from ``GETLOCK_*`` environment variables."""

    overrides: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        value = os.getenv(str(field.validation_alias))
        if value is not None and value != "":
            overrides[name] = value
    if overrides:
        logger.debug("Loaded settings overrides from environment: %s", sorted(overrides))
    return Settings(**overrides)


settings = get_settings()
