"""
Lock store adapters.

Manifesto:
    Mutual exclusion is only as strong as the store's conditional write.
    Both adapters expose the same three atomic capabilities and nothing
    else: create-if-absent with a TTL, read the owner, delete if owner.
    There is no get-then-set anywhere in this module; two callers racing
    for a free key are decided by the store, never by the client.

Architecture:
    ::

        LockStore (Protocol)
        ├── RedisLockStore : shared across the fleet (SET NX PX + Lua delete)
        └── LocalLockStore : process-local fallback (dict + threading.Lock)

        API: try_create(key, owner, ttl_seconds) → bool
             read_owner(key) → owner | None
             delete_if_owner(key, owner) → bool
             read_record(key) → LockRecord | None
             list_records() → list[LockRecord]
             ping() → bool

Guardrails:
    ❌ DON'T: Implement try_create as read_owner() followed by a write
    ✅ DO: Use the store's native conditional write (SET NX, a guarded dict)

    ❌ DON'T: Let redis exceptions escape the adapter
    ✅ DO: Translate unreachability into StoreUnavailableError

    ❌ DON'T: Share one LocalLockStore through a module global
    ✅ DO: Construct it explicitly and inject it into the coordinator
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from fleetlock.core.errors import StoreUnavailableError
from fleetlock.core.logging import get_logger

from .options import LockRecord

if TYPE_CHECKING:
    from fleetlock.core.settings import FleetlockSettings

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@runtime_checkable
class LockStore(Protocol):
    """Protocol for lock store implementations.

    ``atomic_create`` must be ``True`` only when ``try_create`` is a single
    atomic conditional write. The coordinator refuses stores that do not
    declare it.

    Implementations:
        - :class:`RedisLockStore`: shared, fleet-wide
        - :class:`LocalLockStore`: process-local fallback
    """

    name: str
    atomic_create: bool

    def try_create(self, key: str, owner: str, ttl_seconds: float) -> bool:
        """Create ``key`` owned by ``owner`` unless an unexpired record exists.

        Returns:
            ``True`` if the record was created, ``False`` if the key is held.

        Raises:
            StoreUnavailableError: Store could not be reached in time.
        """
        ...

    def read_owner(self, key: str) -> str | None:
        """Owner of the unexpired record for ``key``, or ``None``."""
        ...

    def delete_if_owner(self, key: str, owner: str) -> bool:
        """Delete ``key`` only if ``owner`` holds it. Returns ``True`` if deleted."""
        ...

    def read_record(self, key: str) -> LockRecord | None:
        """Full unexpired record for ``key``, or ``None``."""
        ...

    def list_records(self) -> list[LockRecord]:
        """All unexpired records in this store."""
        ...

    def ping(self) -> bool:
        """``True`` if the store is reachable right now."""
        ...


# ------------------------------------------------------------------ #
# Local fallback store
# ------------------------------------------------------------------ #


class LocalLockStore:
    """In-process lock store guarded by a mutex.

    Records are only visible inside this process, so it prevents duplicate
    execution between threads and tasks of one worker, not across the
    fleet. Expired records are removed the next time their key is touched.

    Example:
        >>> store = LocalLockStore()
        >>> store.try_create("job-x", "worker-a", ttl_seconds=60)
        True
        >>> store.try_create("job-x", "worker-b", ttl_seconds=60)
        False
    """

    name = "local"
    atomic_create = True

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._records: dict[str, LockRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock or _utcnow

    def _live(self, key: str, now: datetime) -> LockRecord | None:
        # Caller holds self._lock.
        record = self._records.get(key)
        if record is not None and record.is_expired(now):
            del self._records[key]
            return None
        return record

    def try_create(self, key: str, owner: str, ttl_seconds: float) -> bool:
        with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._records[key] = LockRecord.from_ttl(key, owner, ttl_seconds, now)
            return True

    def read_owner(self, key: str) -> str | None:
        record = self.read_record(key)
        return record.owner_id if record else None

    def read_record(self, key: str) -> LockRecord | None:
        with self._lock:
            return self._live(key, self._clock())

    def delete_if_owner(self, key: str, owner: str) -> bool:
        with self._lock:
            record = self._live(key, self._clock())
            if record is None or record.owner_id != owner:
                return False
            del self._records[key]
            return True

    def list_records(self) -> list[LockRecord]:
        with self._lock:
            now = self._clock()
            return [r for r in (self._live(k, now) for k in list(self._records)) if r is not None]

    def purge_expired(self) -> int:
        """Remove every expired record. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, r in self._records.items() if r.is_expired(now)]
            for key in expired:
                del self._records[key]
            return len(expired)

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Remove all records. Testing only."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# ------------------------------------------------------------------ #
# Redis store
# ------------------------------------------------------------------ #

# KEYS[1] = lock key, ARGV[1] = expected owner
_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisLockStore:
    """Redis-backed lock store shared by every instance of the fleet.

    ``try_create`` is ``SET key owner NX PX ttl``; ``delete_if_owner`` is a
    server-side compare-and-delete script. Redis expires keys itself, so an
    abandoned lock disappears once its TTL elapses.

    The client should be built with short socket timeouts and no automatic
    retries (see :meth:`from_url`) so that an unresponsive server is reported
    as unreachable instead of blocking the caller.

    Example:
        store = RedisLockStore.from_url("redis://localhost:6379/0")
        if store.try_create("daily-cleanup", owner, ttl_seconds=3600):
            ...
    """

    name = "redis"
    atomic_create = True

    def __init__(self, client: Any, *, key_prefix: str = "lock:") -> None:
        self._client = client
        self._prefix = key_prefix
        self._release = client.register_script(_RELEASE_SCRIPT)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "lock:",
        socket_timeout: float = 0.5,
        connect_timeout: float = 0.5,
    ) -> RedisLockStore:
        """Build a store with bounded timeouts and no client-side retries."""
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=connect_timeout,
            retry=Retry(NoBackoff(), 0),
            retry_on_timeout=False,
        )
        return cls(client, key_prefix=key_prefix)

    @property
    def key_prefix(self) -> str:
        return self._prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _call(self, operation: str, key: str | None, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except (redis.RedisError, OSError) as exc:
            raise StoreUnavailableError(
                f"Redis {operation} failed: {exc}", cause=exc
            ).with_context(key=key, store=self.name) from exc

    def try_create(self, key: str, owner: str, ttl_seconds: float) -> bool:
        ttl_ms = max(1, int(round(ttl_seconds * 1000)))
        created = self._call(
            "try_create", key, lambda: self._client.set(self._key(key), owner, nx=True, px=ttl_ms)
        )
        return bool(created)

    def read_owner(self, key: str) -> str | None:
        return self._call("read_owner", key, lambda: self._client.get(self._key(key)))

    def read_record(self, key: str) -> LockRecord | None:
        def _read() -> tuple[str | None, int]:
            pipe = self._client.pipeline(transaction=True)
            pipe.get(self._key(key))
            pipe.pttl(self._key(key))
            owner, pttl = pipe.execute()
            return owner, pttl

        owner, pttl = self._call("read_record", key, _read)
        if owner is None or pttl == -2:
            return None
        # -1 means no expiry, which this store never writes; report it as
        # expiring now so callers do not treat it as a permanent lock.
        remaining = max(0, pttl)
        return LockRecord(key=key, owner_id=owner, expires_at=_utcnow() + timedelta(milliseconds=remaining))

    def delete_if_owner(self, key: str, owner: str) -> bool:
        deleted = self._call(
            "delete_if_owner", key, lambda: self._release(keys=[self._key(key)], args=[owner])
        )
        return bool(deleted)

    def list_records(self) -> list[LockRecord]:
        def _scan() -> list[str]:
            return list(self._client.scan_iter(match=f"{self._prefix}*", count=100))

        records = []
        for full_key in self._call("list_records", None, _scan):
            record = self.read_record(full_key[len(self._prefix):])
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.key)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except (redis.RedisError, OSError) as exc:
            logger.debug("lock_store_ping_failed", store=self.name, error=str(exc))
            return False

    def close(self) -> None:
        self._client.close()


def create_lock_store(settings: FleetlockSettings) -> RedisLockStore | None:
    """Build the shared store from settings.

    Returns ``None`` when no Redis URL is configured; the coordinator then
    coordinates on its fallback store only.
    """
    if not settings.redis_url:
        logger.info("lock_store_not_configured", fallback="local")
        return None
    return RedisLockStore.from_url(
        settings.redis_url,
        key_prefix=settings.key_prefix,
        socket_timeout=settings.socket_timeout_seconds,
        connect_timeout=settings.connect_timeout_seconds,
    )


__all__ = [
    "LockStore",
    "LocalLockStore",
    "RedisLockStore",
    "create_lock_store",
]
