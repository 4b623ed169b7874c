"""
Centralized settings for fleetlock.

One validated, cached settings object holds everything a worker needs to
reach the shared lock store and to fill in default lock options. Values come
from ``FLEETLOCK_*`` environment variables or a ``.env`` file.

Examples:
    >>> import os
    >>> os.environ["FLEETLOCK_REDIS_URL"] = "redis://cache:6379/0"
    >>> clear_settings_cache()
    >>> get_settings().redis_url
    'redis://cache:6379/0'

Leaving ``redis_url`` unset is a supported deployment: the coordinator then
runs on its process-local fallback store only.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FleetlockSettings(BaseSettings):
    """fleetlock configuration.

    Fields
    ──────
    redis_url                : Shared store URL (``None`` → fallback only)
    key_prefix               : Prefix for every lock key in the shared store
    socket_timeout_seconds   : Bound on each store command
    connect_timeout_seconds  : Bound on establishing a store connection
    default_ttl_seconds      : TTL used when LockOptions are built from settings
    default_max_retries      : Retry count used when built from settings
    default_retry_delay_ms   : Delay between retries when built from settings
    instance_id              : Override the generated coordinator identity
    log_level / log_format   : Structlog configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="FLEETLOCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Shared store ─────────────────────────────────────────────
    redis_url: str | None = Field(default=None, description="Redis URL for the shared lock store")
    key_prefix: str = Field(default="lock:")
    socket_timeout_seconds: float = Field(default=0.5, gt=0, allow_inf_nan=False)
    connect_timeout_seconds: float = Field(default=0.5, gt=0, allow_inf_nan=False)

    # ── Lock defaults ────────────────────────────────────────────
    default_ttl_seconds: float = Field(default=60, gt=0, allow_inf_nan=False)
    default_max_retries: int = Field(default=0, ge=0)
    default_retry_delay_ms: int = Field(default=100, ge=0)

    # ── Identity ─────────────────────────────────────────────────
    instance_id: str | None = Field(default=None)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto")

    @field_validator("redis_url")
    @classmethod
    def _blank_url_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console", "auto"}:
            raise ValueError(f"log_format must be json, console or auto, got {v!r}")
        return v

    @property
    def json_logs(self) -> bool | None:
        """Tri-state flag for ``configure_logging(json_format=...)``."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


@lru_cache(maxsize=1)
def get_settings() -> FleetlockSettings:
    """Return the cached settings instance."""
    return FleetlockSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["FleetlockSettings", "get_settings", "clear_settings_cache"]
