"""
Structured error types for fleetlock.

Every fleetlock error carries a category, a retryable flag, structured
context and an optional chained cause, so callers can decide whether to
retry and log aggregators can route the failure without parsing messages.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the lock layer knows
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry the lock key, store and owner
    - **Error Chaining:** Preserve the underlying Redis/socket exception

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      FleetlockError                              │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  StoreUnavailableError   LockError            ConfigError        │
        │  (NETWORK, retryable)    (LOCK)               (CONFIG)           │
        │                              │                    │              │
        │                     LockContentionError    LockStoreConfigError  │
        │                     OwnershipMismatchError TriggerConfigError    │
        │                     GuardedOperationError                        │
        │                                                                  │
        │  ValidationError         RegistryError                           │
        │  (VALIDATION)            (REGISTRY)                              │
        │       │                      │                                   │
        │  LockOptionsError        LockNotRegisteredError                  │
        │                          DuplicateLockKeyError                   │
        └─────────────────────────────────────────────────────────────────┘

Only the setup-time errors (config, validation, registry) are raised to
callers of the coordinator. ``StoreUnavailableError`` is caught inside the
coordinator and turned into fallback coordination; contention is a plain
``False`` from ``acquire``; a non-owner release is a logged no-op.

Examples:
    >>> error = StoreUnavailableError("redis timed out").with_context(key="job-x")
    >>> error.retryable
    True
    >>> error.to_dict()["context"]
    {'key': 'job-x'}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"  # Store connection, timeout
    LOCK = "LOCK"  # Contention, ownership
    VALIDATION = "VALIDATION"  # Bad options
    CONFIG = "CONFIG"  # Store or trigger misconfiguration
    REGISTRY = "REGISTRY"  # Work/options binding
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        key: Lock key the error relates to
        store: Store backend name (``redis``, ``local``)
        owner_id: Instance identity involved
        metadata: Additional key-value pairs
    """

    key: str | None = None
    store: str | None = None
    owner_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ("key", "store", "owner_id"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FleetlockError(Exception):
    """Base exception for all fleetlock errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FleetlockError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreUnavailableError("down").with_context(key="job-x", store="redis")
        """
        for name, value in kwargs.items():
            if hasattr(self.context, name) and name != "metadata":
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreUnavailableError(FleetlockError):
    """The shared lock store could not be reached within the bounded timeout.

    Raised by store adapters; the coordinator catches it and coordinates on
    the local fallback store instead.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# =============================================================================
# LOCK ERRORS
# =============================================================================


class LockError(FleetlockError):
    """Lock coordination outcome surfaced as an exception."""

    default_category = ErrorCategory.LOCK
    default_retryable = False


class LockContentionError(LockError):
    """Lock is held by another owner.

    ``acquire`` reports contention as ``False``; this exception is only
    raised by helpers that promise to hold the lock (``LockCoordinator.hold``).
    """

    default_retryable = True

    def __init__(self, key: str, holder: str | None = None):
        self.key = key
        self.holder = holder
        message = f"Lock {key!r} is held by another instance"
        if holder:
            message = f"Lock {key!r} is held by {holder}"
        super().__init__(message, context=ErrorContext(key=key, owner_id=holder))


class OwnershipMismatchError(LockError):
    """Release attempted by an instance that does not own the lock."""

    def __init__(self, key: str, owner_id: str):
        self.key = key
        self.owner_id = owner_id
        super().__init__(
            f"Lock {key!r} is not owned by {owner_id}",
            context=ErrorContext(key=key, owner_id=owner_id),
        )


class GuardedOperationError(LockError):
    """Marks a failure raised by a guarded unit of work.

    The gate re-raises the work's own exception unchanged; this class names
    the failure kind in structured logs.
    """

    default_category = ErrorCategory.INTERNAL


# =============================================================================
# VALIDATION / CONFIG / REGISTRY ERRORS
# =============================================================================


class ValidationError(FleetlockError):
    """Invalid value. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class LockOptionsError(ValidationError):
    """LockOptions field outside its allowed range."""


class ConfigError(FleetlockError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class LockStoreConfigError(ConfigError):
    """Store cannot uphold mutual exclusion (no atomic conditional write)."""


class TriggerConfigError(ConfigError):
    """Trigger source configured with an invalid interval or cron expression."""


class RegistryError(FleetlockError):
    """Work-to-options binding error."""

    default_category = ErrorCategory.REGISTRY
    default_retryable = False


class LockNotRegisteredError(RegistryError):
    """No LockOptions bound to the requested work."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No lock options registered for {name!r}")


class DuplicateLockKeyError(RegistryError):
    """Two different units of work bound to the same lock key or name."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Lock key {key!r} is already registered")


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, FleetlockError):
        return error.retryable
    return isinstance(error, (ConnectionError, OSError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FleetlockError",
    "StoreUnavailableError",
    "LockError",
    "LockContentionError",
    "OwnershipMismatchError",
    "GuardedOperationError",
    "ValidationError",
    "LockOptionsError",
    "ConfigError",
    "LockStoreConfigError",
    "TriggerConfigError",
    "RegistryError",
    "LockNotRegisteredError",
    "DuplicateLockKeyError",
    "is_retryable",
]
