"""Tests for the fleetlock error hierarchy."""

import pytest

from fleetlock.core.errors import (
    ConfigError,
    DuplicateLockKeyError,
    ErrorCategory,
    ErrorContext,
    FleetlockError,
    GuardedOperationError,
    LockContentionError,
    LockError,
    LockNotRegisteredError,
    LockOptionsError,
    LockStoreConfigError,
    OwnershipMismatchError,
    RegistryError,
    StoreUnavailableError,
    TriggerConfigError,
    ValidationError,
    is_retryable,
)


class TestErrorContext:
    def test_to_dict_excludes_none(self):
        ctx = ErrorContext(key="job-x")
        assert ctx.to_dict() == {"key": "job-x"}

    def test_metadata_merged(self):
        ctx = ErrorContext(key="job-x", store="redis", metadata={"attempt": 2})
        assert ctx.to_dict() == {"key": "job-x", "store": "redis", "attempt": 2}


class TestFleetlockError:
    def test_defaults(self):
        error = FleetlockError("boom")

        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    def test_with_context_sets_known_fields_and_metadata(self):
        error = FleetlockError("boom").with_context(key="job-x", store="redis", attempt=3)

        assert error.context.key == "job-x"
        assert error.context.store == "redis"
        assert error.context.metadata == {"attempt": 3}

    def test_cause_chained(self):
        cause = ConnectionError("refused")
        error = StoreUnavailableError("down", cause=cause)

        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "refused"

    def test_to_dict(self):
        error = StoreUnavailableError("down").with_context(key="job-x")

        assert error.to_dict() == {
            "error_type": "StoreUnavailableError",
            "message": "down",
            "category": "NETWORK",
            "retryable": True,
            "context": {"key": "job-x"},
        }

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestHierarchy:
    @pytest.mark.parametrize(
        "error, parent, category, retryable",
        [
            (StoreUnavailableError("x"), FleetlockError, ErrorCategory.NETWORK, True),
            (LockContentionError("k"), LockError, ErrorCategory.LOCK, True),
            (OwnershipMismatchError("k", "me"), LockError, ErrorCategory.LOCK, False),
            (GuardedOperationError("x"), LockError, ErrorCategory.INTERNAL, False),
            (LockOptionsError("x"), ValidationError, ErrorCategory.VALIDATION, False),
            (LockStoreConfigError("x"), ConfigError, ErrorCategory.CONFIG, False),
            (TriggerConfigError("x"), ConfigError, ErrorCategory.CONFIG, False),
            (LockNotRegisteredError("n"), RegistryError, ErrorCategory.REGISTRY, False),
            (DuplicateLockKeyError("k"), RegistryError, ErrorCategory.REGISTRY, False),
        ],
    )
    def test_categories(self, error, parent, category, retryable):
        assert isinstance(error, parent)
        assert error.category == category
        assert error.retryable is retryable

    def test_contention_message_names_holder(self):
        error = LockContentionError("job-x", holder="host-a:1-2-3")

        assert "host-a:1-2-3" in str(error)
        assert error.context.owner_id == "host-a:1-2-3"

    def test_validation_error_fields(self):
        error = LockOptionsError("bad ttl", field="ttl_seconds", value=0)

        d = error.to_dict()
        assert d["field"] == "ttl_seconds"
        assert d["value"] == "0"


class TestIsRetryable:
    def test_fleetlock_errors(self):
        assert is_retryable(StoreUnavailableError("x")) is True
        assert is_retryable(ConfigError("x")) is False

    def test_builtin_errors(self):
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(ValueError()) is False
