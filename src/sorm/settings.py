"""Environment-driven settings for sorm.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    ``SormSettings`` reads ``SORM_*`` variables (and a ``.env`` file) once;
    :func:`sorm.config.get_config` turns them into the default
    :class:`~sorm.config.MapperConfig`.

Examples:
    >>> import os
    >>> os.environ["SORM_PARAMETER_PREFIX"] = "?"
    >>> SormSettings().parameter_prefix
    '?'

Tags:
    settings, configuration, pydantic, environment, sorm
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SormSettings(BaseSettings):
    """Mapper defaults.

    Fields
    ──────
    parameter_prefix : Placeholder prefix; ``$`` renders ``$1, $2``
    dialect          : Dialect name (sqlite, postgresql, mysql, db2, oracle)
    log_queries      : Install the structlog query logger by default
    log_level        : Level of query events; default configure_logging threshold
    slow_query_ms    : Log statements at or above this duration as slow
    """

    model_config = SettingsConfigDict(
        env_prefix="SORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    parameter_prefix: str = Field(default="$", min_length=1)
    dialect: str = "sqlite"
    log_queries: bool = False
    log_level: str = "debug"
    slow_query_ms: float | None = Field(default=None, ge=0)

    @field_validator("dialect", "log_level")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.lower()


@lru_cache(maxsize=1)
def get_settings() -> SormSettings:
    """Cached settings instance (read once per process)."""
    return SormSettings()


__all__ = ["SormSettings", "get_settings"]
