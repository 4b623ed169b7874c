"""Explicit registry binding units of work to their lock options.

Options are bound once, at setup time, by the code that wires the worker
together. Nothing is discovered through metadata at run time: the gate is
handed the options it needs when it is built.

Example:
    >>> registry = LockRegistry()
    >>>
    >>> @registry.locked("daily-cleanup", ttl_seconds=3600)
    ... def daily_cleanup():
    ...     ...
    >>>
    >>> registry.options_for(daily_cleanup).ttl_seconds
    3600
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

from fleetlock.core.errors import DuplicateLockKeyError, LockNotRegisteredError, RegistryError
from fleetlock.core.logging import get_logger

from .options import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY_MS, DEFAULT_TTL_SECONDS, LockOptions

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def work_name(work: Callable[..., Any]) -> str:
    """Stable name for a callable: ``module.qualname``."""
    qualname = getattr(work, "__qualname__", None)
    if qualname is None:
        raise RegistryError(
            f"Cannot derive a name for {work!r}; register it with an explicit name"
        )
    module = getattr(work, "__module__", None)
    return f"{module}.{qualname}" if module else qualname


@dataclass(frozen=True)
class RegisteredWork:
    """A unit of work and the options bound to it."""

    name: str
    work: Callable[..., Any]
    options: LockOptions


class LockRegistry:
    """Registry of guarded units of work.

    One lock key belongs to exactly one registered name; binding a second
    unit of work to the same key is rejected so two different jobs cannot
    silently exclude each other.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegisteredWork] = {}

    def register(
        self,
        work: Callable[..., Any],
        options: LockOptions,
        *,
        name: str | None = None,
    ) -> RegisteredWork:
        """Bind ``work`` to ``options``.

        Raises:
            DuplicateLockKeyError: Name or key already bound.
        """
        name = name or work_name(work)
        if name in self._entries:
            raise DuplicateLockKeyError(name, f"Work {name!r} is already registered")
        for entry in self._entries.values():
            if entry.options.key == options.key:
                raise DuplicateLockKeyError(
                    options.key,
                    f"Lock key {options.key!r} is already bound to {entry.name!r}",
                )

        entry = RegisteredWork(name=name, work=work, options=options)
        self._entries[name] = entry
        logger.debug("lock_work_registered", name=name, key=options.key, ttl_seconds=options.ttl_seconds)
        return entry

    def locked(
        self,
        key: str | None = None,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        name: str | None = None,
    ) -> Callable[[F], F]:
        """Decorator form of :meth:`register`. The key defaults to the work name."""

        def decorator(work: F) -> F:
            entry_name = name or work_name(work)
            options = LockOptions(
                key=key or entry_name,
                ttl_seconds=ttl_seconds,
                max_retries=max_retries,
                retry_delay_ms=retry_delay_ms,
            )
            self.register(work, options, name=entry_name)
            return work

        return decorator

    def get(self, work_or_name: Callable[..., Any] | str) -> RegisteredWork:
        name = work_or_name if isinstance(work_or_name, str) else work_name(work_or_name)
        try:
            return self._entries[name]
        except KeyError:
            raise LockNotRegisteredError(name) from None

    def options_for(self, work_or_name: Callable[..., Any] | str) -> LockOptions:
        """Options bound to a callable or a registered name."""
        return self.get(work_or_name).options

    def names(self) -> list[str]:
        return sorted(self._entries)

    def clear(self) -> None:
        """Clear registry (for testing)."""
        self._entries.clear()

    def __contains__(self, work_or_name: object) -> bool:
        if isinstance(work_or_name, str):
            return work_or_name in self._entries
        if callable(work_or_name):
            try:
                return work_name(work_or_name) in self._entries
            except RegistryError:
                return False
        return False

    def __iter__(self) -> Iterator[RegisteredWork]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["LockRegistry", "RegisteredWork", "work_name"]
