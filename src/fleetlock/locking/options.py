"""Lock options and lock records.

``LockOptions`` is the static per-operation configuration bound to a unit of
work at setup time. ``LockRecord`` is the only state a store ever persists:
who holds a key and until when.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from fleetlock.core.errors import LockOptionsError

if TYPE_CHECKING:
    from fleetlock.core.settings import FleetlockSettings

DEFAULT_TTL_SECONDS: float = 60
DEFAULT_MAX_RETRIES: int = 0
DEFAULT_RETRY_DELAY_MS: int = 100


@dataclass(frozen=True)
class LockOptions:
    """Lock configuration for one protected operation.

    Attributes:
        key: Unique lock key for the operation (non-empty)
        ttl_seconds: Safety bound after which an unreleased lock is abandoned
        max_retries: Extra attempts after a refused acquire
        retry_delay_ms: Wait between attempts

    Example:
        >>> LockOptions(key="daily-cleanup", ttl_seconds=3600)
        LockOptions(key='daily-cleanup', ttl_seconds=3600, max_retries=0, retry_delay_ms=100)
    """

    key: str
    ttl_seconds: float = DEFAULT_TTL_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise LockOptionsError("Lock key must be a non-empty string", field="key", value=self.key)
        if isinstance(self.ttl_seconds, bool) or not isinstance(self.ttl_seconds, (int, float)):
            raise LockOptionsError("ttl_seconds must be a number", field="ttl_seconds", value=self.ttl_seconds)
        if not math.isfinite(self.ttl_seconds) or self.ttl_seconds <= 0:
            raise LockOptionsError("ttl_seconds must be a finite number > 0", field="ttl_seconds", value=self.ttl_seconds)
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise LockOptionsError("max_retries must be an integer >= 0", field="max_retries", value=self.max_retries)
        if (
            isinstance(self.retry_delay_ms, bool)
            or not isinstance(self.retry_delay_ms, (int, float))
            or not math.isfinite(self.retry_delay_ms)
            or self.retry_delay_ms < 0
        ):
            raise LockOptionsError("retry_delay_ms must be a finite number >= 0", field="retry_delay_ms", value=self.retry_delay_ms)

    @property
    def attempts(self) -> int:
        """Total number of acquire attempts (first try plus retries)."""
        return self.max_retries + 1

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000

    def with_overrides(self, **changes: Any) -> LockOptions:
        """Return a copy with some fields replaced (validated again)."""
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, key: str, settings: FleetlockSettings, **overrides: Any) -> LockOptions:
        """Build options for ``key`` using the configured defaults."""
        values: dict[str, Any] = {
            "ttl_seconds": settings.default_ttl_seconds,
            "max_retries": settings.default_max_retries,
            "retry_delay_ms": settings.default_retry_delay_ms,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(key=key, **values)


@dataclass(frozen=True)
class LockRecord:
    """One held lock as seen in a store.

    Records are never mutated: a new acquire creates a new record, a release
    or expiry removes it.
    """

    key: str
    owner_id: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return now >= self.expires_at

    def remaining_seconds(self, now: datetime | None = None) -> float:
        now = now or datetime.now(UTC)
        return max(0.0, (self.expires_at - now).total_seconds())

    @classmethod
    def from_ttl(cls, key: str, owner_id: str, ttl_seconds: float, now: datetime | None = None) -> LockRecord:
        now = now or datetime.now(UTC)
        return cls(key=key, owner_id=owner_id, expires_at=now + timedelta(seconds=ttl_seconds))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "key": self.key,
            "owner_id": self.owner_id,
            "expires_at": self.expires_at.isoformat(),
        }


__all__ = [
    "LockOptions",
    "LockRecord",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY_MS",
]
