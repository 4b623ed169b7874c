"""Lock coordinator.

Manifesto:
    A periodic job deployed on N workers must run on at most one of them
    at a time.  The coordinator owns that decision: one atomic
    create-if-absent against the shared store, bounded retries, owner-only
    release, and a process-local fallback when the shared store cannot be
    reached.  Losing the shared store degrades the guarantee from
    "one instance in the fleet" to "one task in this process"; it never
    turns into an exception for the caller.

This module provides :class:`LockCoordinator`, the acquire/release/is_locked
surface used directly by library callers and by :class:`ExecutionGate`.

Tags:
    fleetlock, distributed-locks, TTL, fallback, concurrency

Doc-Types:
    api-reference, architecture-diagram


    Coordinator Flow::

        acquire(options)
            │
            ├── attempt 1..max_retries+1
            │     ├── remote.try_create(key, self, ttl)   ──► True / False
            │     │        └── StoreUnavailableError
            │     │              └── fallback.try_create(key, self, ttl)
            │     └── refused → sleep(retry_delay_ms)
            │
            └── remember which store holds the key

        release(key)
            └── store_that_holds_it.delete_if_owner(key, self)

        State per key:
            Unlocked ──acquire──► Locked(owner, expires_at)
            Locked ──owner release / TTL elapses──► Unlocked
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from fleetlock.core.errors import (
    LockContentionError,
    LockStoreConfigError,
    OwnershipMismatchError,
    StoreUnavailableError,
)
from fleetlock.core.logging import get_logger

from .identity import get_instance_id
from .options import LockOptions, LockRecord
from .stores import LocalLockStore, LockStore, create_lock_store

if TYPE_CHECKING:
    from fleetlock.core.settings import FleetlockSettings

logger = get_logger(__name__)


def _validate_store(store: Any, role: str) -> None:
    if not isinstance(store, LockStore):
        raise LockStoreConfigError(
            f"{role} store {type(store).__name__} does not implement the LockStore protocol"
        )
    if not getattr(store, "atomic_create", False):
        raise LockStoreConfigError(
            f"{role} store {store.name!r} has no atomic conditional write; "
            "it cannot guarantee mutual exclusion"
        ).with_context(store=store.name)


class LockCoordinator:
    """Distributed lock coordinator with local fallback.

    Example:
        >>> coordinator = LockCoordinator(RedisLockStore.from_url(url))
        >>> options = LockOptions(key="daily-cleanup", ttl_seconds=3600)
        >>>
        >>> if coordinator.acquire(options):
        ...     try:
        ...         run_cleanup()
        ...     finally:
        ...         coordinator.release("daily-cleanup")
        ... else:
        ...     print("Another instance has the lock")
    """

    def __init__(
        self,
        remote: LockStore | None = None,
        *,
        fallback: LockStore | None = None,
        instance_id: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the coordinator.

        Args:
            remote: Shared store. ``None`` coordinates on the fallback only.
            fallback: Process-local store. A fresh ``LocalLockStore`` if omitted.
            instance_id: Owner id written into records. Defaults to the
                process identity, looked up on every use so a forked child
                writes its own id.
            sleep: Delay function between retries.

        Raises:
            LockStoreConfigError: A store lacks an atomic conditional write.
        """
        if remote is not None:
            _validate_store(remote, "remote")
        fallback = fallback if fallback is not None else LocalLockStore()
        _validate_store(fallback, "fallback")

        self.remote = remote
        self.fallback = fallback
        self._instance_id = instance_id
        self._sleep = sleep

        self._held: dict[str, LockStore] = {}
        self._state_lock = threading.Lock()
        self._degraded = False

    @property
    def instance_id(self) -> str:
        """Owner id written into lock records by this coordinator."""
        return self._instance_id or get_instance_id()

    @classmethod
    def from_settings(cls, settings: FleetlockSettings) -> LockCoordinator:
        """Build a coordinator wired to the configured shared store."""
        return cls(create_lock_store(settings), instance_id=settings.instance_id)

    # === Degraded-mode bookkeeping ===

    def _mark_degraded(self, exc: StoreUnavailableError, key: str | None) -> None:
        with self._state_lock:
            entering = not self._degraded
            self._degraded = True
        if entering:
            logger.warning(
                "lock_store_degraded",
                store=self.remote.name if self.remote else None,
                key=key,
                error=str(exc),
                scope="process",
            )
        else:
            logger.debug("lock_store_unavailable", key=key, error=str(exc))

    def _mark_recovered(self) -> None:
        with self._state_lock:
            recovering = self._degraded
            self._degraded = False
        if recovering:
            logger.info("lock_store_recovered", store=self.remote.name if self.remote else None)

    @property
    def degraded(self) -> bool:
        """``True`` while the last remote call failed and locks are process-local."""
        return self._degraded

    @property
    def held_keys(self) -> list[str]:
        """Keys this coordinator acquired and has not released yet."""
        with self._state_lock:
            return sorted(self._held)

    # === Acquire ===

    def _try_once(self, options: LockOptions) -> LockStore | None:
        if self.remote is not None:
            try:
                created = self.remote.try_create(options.key, self.instance_id, options.ttl_seconds)
            except StoreUnavailableError as exc:
                self._mark_degraded(exc, options.key)
            else:
                self._mark_recovered()
                return self.remote if created else None

        if self.fallback.try_create(options.key, self.instance_id, options.ttl_seconds):
            return self.fallback
        return None

    def acquire(self, options: LockOptions) -> bool:
        """Acquire the lock described by ``options``.

        Makes at most ``options.max_retries + 1`` attempts, waiting
        ``options.retry_delay_ms`` between refused attempts.

        Returns:
            True if the lock was created for this instance, False if it is
            held by someone else.
        """
        for attempt in range(1, options.attempts + 1):
            store = self._try_once(options)
            if store is not None:
                with self._state_lock:
                    self._held[options.key] = store
                logger.debug(
                    "lock_acquired",
                    key=options.key,
                    store=store.name,
                    attempt=attempt,
                    ttl_seconds=options.ttl_seconds,
                )
                return True

            if attempt < options.attempts:
                self._sleep(options.retry_delay_seconds)

        logger.debug("lock_refused", key=options.key, attempts=options.attempts)
        return False

    # === Release ===

    def release(self, key: str) -> None:
        """Release ``key`` if this instance owns it.

        A release from a non-owner (for example after this instance's lock
        expired and another instance took it) is a no-op.
        """
        with self._state_lock:
            holder = self._held.pop(key, None)

        if holder is not None:
            stores = [holder]
        else:
            stores = [s for s in (self.remote, self.fallback) if s is not None]

        released = False
        for store in stores:
            try:
                released = store.delete_if_owner(key, self.instance_id) or released
            except StoreUnavailableError as exc:
                self._mark_degraded(exc, key)
                logger.warning("lock_release_deferred_to_ttl", key=key, store=store.name)
            else:
                if store is self.remote:
                    self._mark_recovered()

        if released:
            logger.debug("lock_released", key=key)
        else:
            mismatch = OwnershipMismatchError(key, self.instance_id)
            logger.debug("lock_release_not_owner", **mismatch.to_dict())

    # === Inspection ===

    def is_locked(self, key: str) -> bool:
        """``True`` iff an unexpired record exists for ``key``."""
        return self.get_lock_holder(key) is not None

    def get_lock_holder(self, key: str) -> str | None:
        """Owner id of the unexpired record for ``key``, if any."""
        owner = self.fallback.read_owner(key)
        if owner is not None or self.remote is None:
            return owner
        try:
            owner = self.remote.read_owner(key)
        except StoreUnavailableError as exc:
            self._mark_degraded(exc, key)
            return None
        self._mark_recovered()
        return owner

    def get_lock_record(self, key: str) -> LockRecord | None:
        """Unexpired record for ``key`` with its expiry, if any."""
        record = self.fallback.read_record(key)
        if record is not None or self.remote is None:
            return record
        try:
            record = self.remote.read_record(key)
        except StoreUnavailableError as exc:
            self._mark_degraded(exc, key)
            return None
        self._mark_recovered()
        return record

    def list_active_locks(self) -> list[LockRecord]:
        """Unexpired records from the shared store (when reachable) and the fallback."""
        records = list(self.fallback.list_records())
        if self.remote is not None:
            try:
                records.extend(self.remote.list_records())
            except StoreUnavailableError as exc:
                self._mark_degraded(exc, None)
            else:
                self._mark_recovered()
        return records

    def cleanup_expired_locks(self) -> int:
        """Drop expired records from the fallback store.

        Expiry is observed lazily on every access anyway; this only bounds
        memory for keys that are never touched again.
        """
        purge = getattr(self.fallback, "purge_expired", None)
        count = purge() if purge is not None else 0
        if count:
            logger.info("lock_fallback_purged", count=count)
        return count

    @contextmanager
    def hold(self, options: LockOptions) -> Iterator[None]:
        """Hold the lock for the duration of a ``with`` block.

        Raises:
            LockContentionError: The lock could not be acquired.
        """
        if not self.acquire(options):
            raise LockContentionError(options.key, self.get_lock_holder(options.key))
        try:
            yield
        finally:
            self.release(options.key)

    # === Async facade ===

    async def acquire_async(self, options: LockOptions) -> bool:
        """``acquire`` without blocking the event loop."""
        return await asyncio.to_thread(self.acquire, options)

    async def release_async(self, key: str) -> None:
        """``release`` without blocking the event loop."""
        await asyncio.to_thread(self.release, key)

    async def is_locked_async(self, key: str) -> bool:
        """``is_locked`` without blocking the event loop."""
        return await asyncio.to_thread(self.is_locked, key)

    # === Health ===

    def health(self) -> dict[str, Any]:
        """Return coordinator health status."""
        remote_reachable = None
        if self.remote is not None:
            remote_reachable = self.remote.ping()
        return {
            "healthy": remote_reachable is not False,
            "instance_id": self.instance_id,
            "remote": self.remote.name if self.remote else None,
            "remote_reachable": remote_reachable,
            "degraded": self._degraded,
            "held_keys": self.held_keys,
            "fallback_records": len(self.fallback.list_records()),
        }

    def close(self) -> None:
        """Close the shared store connection, if any."""
        close = getattr(self.remote, "close", None)
        if close is not None:
            close()


__all__ = ["LockCoordinator"]
