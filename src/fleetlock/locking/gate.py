"""Execution gate.

Binds one ``LockOptions`` to one unit of work. Every time its trigger fires
the gate acquires the lock, runs the work if it got the lock, and releases
the lock straight afterwards, whether the work succeeded or raised.

A refused acquire skips the run. Nothing is queued or deferred; the skip
shows up in the logs and in :class:`GateStats` only.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fleetlock.core.errors import GuardedOperationError, is_retryable
from fleetlock.core.logging import bind_context, get_logger, unbind_context

from .options import LockOptions

if TYPE_CHECKING:
    from fleetlock.scheduling.protocol import TriggerSource

    from .coordinator import LockCoordinator

logger = get_logger(__name__)

Work = Callable[[], Any] | Callable[[], Awaitable[Any]]


@dataclass
class GateStats:
    """Counters for one gate."""

    runs: int = 0
    skips: int = 0
    failures: int = 0
    last_run_at: datetime | None = None
    last_skip_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runs": self.runs,
            "skips": self.skips,
            "failures": self.failures,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_skip_at": self.last_skip_at.isoformat() if self.last_skip_at else None,
            "last_error": self.last_error,
        }


class ExecutionGate:
    """Runs a unit of work only while holding its lock.

    Example:
        >>> gate = ExecutionGate(coordinator, LockOptions(key="hourly-sync"), sync_data)
        >>> ran = await gate.fire()
    """

    def __init__(
        self,
        coordinator: LockCoordinator,
        options: LockOptions,
        work: Work,
        *,
        name: str | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.options = options
        self.work = work
        self.name = name or options.key
        self.stats = GateStats()

    async def _run_work(self) -> Any:
        if inspect.iscoroutinefunction(self.work):
            return await self.work()
        result = await asyncio.to_thread(self.work)
        if inspect.isawaitable(result):
            return await result
        return result

    async def fire(self) -> bool:
        """Acquire, run, release.

        Returns:
            True if the work ran, False if the run was skipped.

        Raises:
            Exception: Whatever the work raised, after the lock was released.
        """
        # Coordinator calls run via to_thread, which copies this context.
        bind_context(gate=self.name, key=self.options.key)
        try:
            return await self._fire()
        finally:
            unbind_context("gate", "key")

    async def _fire(self) -> bool:
        key = self.options.key
        if not await self.coordinator.acquire_async(self.options):
            self.stats.skips += 1
            self.stats.last_skip_at = datetime.now(UTC)
            logger.info("gate_skipped", gate=self.name, key=key, reason="lock_held")
            return False

        started = datetime.now(UTC)
        try:
            await self._run_work()
        except Exception as exc:
            self.stats.failures += 1
            self.stats.last_error = f"{type(exc).__name__}: {exc}"
            failure = GuardedOperationError(
                f"Guarded work {self.name!r} failed: {exc}",
                retryable=is_retryable(exc),
                cause=exc,
            ).with_context(key=key, owner_id=self.coordinator.instance_id)
            logger.error("gate_failed", gate=self.name, exc_type=type(exc).__name__, **failure.to_dict())
            raise
        finally:
            await self.coordinator.release_async(key)

        self.stats.runs += 1
        self.stats.last_run_at = started
        logger.info(
            "gate_completed",
            gate=self.name,
            key=key,
            duration_ms=round((datetime.now(UTC) - started).total_seconds() * 1000, 1),
        )
        return True

    def run(self) -> bool:
        """Synchronous ``fire`` for callers without an event loop."""
        return asyncio.run(self.fire())

    def __repr__(self) -> str:
        return f"ExecutionGate(name={self.name!r}, key={self.options.key!r})"


def guard(
    coordinator: LockCoordinator,
    options: LockOptions,
    work: Work,
    trigger: TriggerSource,
    *,
    name: str | None = None,
) -> ExecutionGate:
    """Bind ``work`` to ``options`` and start ``trigger`` on the new gate."""
    gate = ExecutionGate(coordinator, options, work, name=name)
    trigger.start(gate.fire)
    return gate


__all__ = ["ExecutionGate", "GateStats", "guard"]
