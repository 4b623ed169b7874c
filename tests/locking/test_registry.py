"""Tests for LockRegistry."""

import pytest

from fleetlock.core.errors import DuplicateLockKeyError, LockNotRegisteredError
from fleetlock.locking import LockOptions, LockRegistry
from fleetlock.locking.registry import work_name


def sync_reports():
    pass


def cleanup():
    pass


@pytest.fixture
def registry():
    return LockRegistry()


class TestLockRegistry:
    def test_register_and_lookup(self, registry):
        options = LockOptions(key="sync", ttl_seconds=300)
        entry = registry.register(sync_reports, options)

        assert entry.name == work_name(sync_reports)
        assert registry.options_for(sync_reports) is options
        assert registry.options_for(entry.name) is options
        assert sync_reports in registry
        assert len(registry) == 1

    def test_explicit_name(self, registry):
        registry.register(sync_reports, LockOptions(key="sync"), name="reports.sync")

        assert "reports.sync" in registry
        assert registry.get("reports.sync").work is sync_reports

    def test_duplicate_name_rejected(self, registry):
        registry.register(sync_reports, LockOptions(key="sync"))

        with pytest.raises(DuplicateLockKeyError):
            registry.register(sync_reports, LockOptions(key="other"))

    def test_duplicate_key_rejected(self, registry):
        registry.register(sync_reports, LockOptions(key="shared"))

        with pytest.raises(DuplicateLockKeyError, match="already bound"):
            registry.register(cleanup, LockOptions(key="shared"))

    def test_unregistered_lookup(self, registry):
        with pytest.raises(LockNotRegisteredError):
            registry.options_for(cleanup)

    def test_contains_non_callable(self, registry):
        assert 42 not in registry

    def test_locked_decorator(self, registry):
        @registry.locked("daily-cleanup", ttl_seconds=3600, max_retries=2)
        def daily_cleanup():
            return "done"

        options = registry.options_for(daily_cleanup)
        assert options.key == "daily-cleanup"
        assert options.ttl_seconds == 3600
        assert options.max_retries == 2
        assert daily_cleanup() == "done"

    def test_locked_decorator_defaults_key_to_name(self, registry):
        @registry.locked()
        def nightly():
            pass

        assert registry.options_for(nightly).key == work_name(nightly)

    def test_names_and_iteration(self, registry):
        registry.register(sync_reports, LockOptions(key="a"), name="b-job")
        registry.register(cleanup, LockOptions(key="b"), name="a-job")

        assert registry.names() == ["a-job", "b-job"]
        assert {entry.options.key for entry in registry} == {"a", "b"}

    def test_clear(self, registry):
        registry.register(sync_reports, LockOptions(key="a"))
        registry.clear()
        assert len(registry) == 0

    def test_separate_registries_independent(self):
        first = LockRegistry()
        second = LockRegistry()
        first.register(sync_reports, LockOptions(key="a"))

        assert sync_reports not in second
