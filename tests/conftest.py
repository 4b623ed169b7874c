"""
Shared pytest fixtures for fleetlock tests.

Fixtures:
- Clock: a settable clock for the local store so expiry is tested without sleeping
- Stores: local store, an always-unreachable store, a store that can be switched off
- Coordinators: two instances sharing one "remote" store, as two fleet workers would
"""

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog

# Ensure src is in path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from fleetlock.core.errors import StoreUnavailableError  # noqa: E402
from fleetlock.core.settings import clear_settings_cache  # noqa: E402
from fleetlock.locking import LocalLockStore, LockCoordinator  # noqa: E402


# =============================================================================
# Test doubles
# =============================================================================


class FakeClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class SwitchableStore(LocalLockStore):
    """Local store standing in for a shared one; ``down = True`` makes it unreachable."""

    name = "redis"

    def __init__(self, *, clock=None):
        super().__init__(clock=clock)
        self.down = False
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.down:
            raise StoreUnavailableError(f"{operation}: connection refused").with_context(store=self.name)

    def try_create(self, key, owner, ttl_seconds):
        self._check("try_create")
        return super().try_create(key, owner, ttl_seconds)

    def read_owner(self, key):
        self._check("read_owner")
        return super().read_owner(key)

    def read_record(self, key):
        self._check("read_record")
        return super().read_record(key)

    def delete_if_owner(self, key, owner):
        self._check("delete_if_owner")
        return super().delete_if_owner(key, owner)

    def list_records(self):
        self._check("list_records")
        return super().list_records()

    def ping(self):
        return not self.down


class UnreachableStore(SwitchableStore):
    """Shared store that never answers."""

    def __init__(self, *, clock=None):
        super().__init__(clock=clock)
        self.down = True


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog():
    """Every test starts and ends with structlog's default configuration."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Drop FLEETLOCK_* variables and the cached settings around each test."""
    import os

    for name in list(os.environ):
        if name.startswith("FLEETLOCK_"):
            monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Store / coordinator fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def local_store(clock) -> LocalLockStore:
    return LocalLockStore(clock=clock)


@pytest.fixture
def shared_store(clock) -> SwitchableStore:
    """A shared store both fleet workers talk to."""
    return SwitchableStore(clock=clock)


@pytest.fixture
def sleeps() -> list[float]:
    return []


def _coordinator(shared, instance_id, clock, sleeps):
    return LockCoordinator(
        shared,
        fallback=LocalLockStore(clock=clock),
        instance_id=instance_id,
        sleep=sleeps.append,
    )


@pytest.fixture
def worker_a(shared_store, clock, sleeps) -> LockCoordinator:
    return _coordinator(shared_store, "host-a:100-1-aaaa", clock, sleeps)


@pytest.fixture
def worker_b(shared_store, clock, sleeps) -> LockCoordinator:
    return _coordinator(shared_store, "host-b:200-1-bbbb", clock, sleeps)
