"""Distributed lock coordination.

Leaves first: ``options`` (LockOptions, LockRecord), ``identity``,
``stores`` (Redis + local fallback), ``coordinator``, ``registry``,
``gate`` and ``service``.
"""

from .coordinator import LockCoordinator
from .gate import ExecutionGate, GateStats, guard
from .identity import generate_instance_id, get_instance_id
from .options import LockOptions, LockRecord
from .registry import LockRegistry, RegisteredWork
from .service import LockedJobService
from .stores import LocalLockStore, LockStore, RedisLockStore, create_lock_store

__all__ = [
    "LockCoordinator",
    "ExecutionGate",
    "GateStats",
    "guard",
    "generate_instance_id",
    "get_instance_id",
    "LockOptions",
    "LockRecord",
    "LockRegistry",
    "RegisteredWork",
    "LockedJobService",
    "LocalLockStore",
    "LockStore",
    "RedisLockStore",
    "create_lock_store",
]
