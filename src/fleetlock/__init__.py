"""
fleetlock — run a job on at most one worker of a fleet at a time.

Quick start::

    from fleetlock import LockCoordinator, LockOptions, RedisLockStore

    coordinator = LockCoordinator(RedisLockStore.from_url("redis://localhost:6379/0"))
    if coordinator.acquire(LockOptions(key="daily-cleanup", ttl_seconds=3600)):
        try:
            cleanup()
        finally:
            coordinator.release("daily-cleanup")
"""

from fleetlock.locking import (
    ExecutionGate,
    LocalLockStore,
    LockCoordinator,
    LockedJobService,
    LockOptions,
    LockRecord,
    LockRegistry,
    LockStore,
    RedisLockStore,
    guard,
)

__version__ = "0.1.0"

__all__ = [
    "ExecutionGate",
    "LocalLockStore",
    "LockCoordinator",
    "LockedJobService",
    "LockOptions",
    "LockRecord",
    "LockRegistry",
    "LockStore",
    "RedisLockStore",
    "guard",
    "__version__",
]
