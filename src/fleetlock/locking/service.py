"""Locked job service.

Owns a coordinator, a registry and the gate/trigger pairs of one worker
process. ``guard(options, work, trigger)`` is the declarative entry point;
``bind(work, trigger)`` uses options already in the registry.

Example:
    >>> service = LockedJobService(LockCoordinator(store))
    >>> service.guard(LockOptions(key="hourly-sync", ttl_seconds=300), sync_data, CronTrigger("0 * * * *"))
    >>> service.start()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fleetlock.core.logging import get_logger

from .coordinator import LockCoordinator
from .gate import ExecutionGate, Work
from .options import LockOptions
from .registry import LockRegistry

logger = get_logger(__name__)


@dataclass
class _Binding:
    gate: ExecutionGate
    trigger: Any


class LockedJobService:
    """Runs guarded jobs on their triggers."""

    def __init__(
        self,
        coordinator: LockCoordinator,
        registry: LockRegistry | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.registry = registry if registry is not None else LockRegistry()
        self._bindings: list[_Binding] = []
        self._running = False

    def guard(
        self,
        options: LockOptions,
        work: Work,
        trigger: Any,
        *,
        name: str | None = None,
    ) -> ExecutionGate:
        """Register ``work`` under ``options`` and attach it to ``trigger``."""
        entry = self.registry.register(work, options, name=name)
        return self._attach(entry.name, options, work, trigger)

    def bind(self, work: Callable[..., Any] | str, trigger: Any) -> ExecutionGate:
        """Attach already-registered work to ``trigger``."""
        entry = self.registry.get(work)
        return self._attach(entry.name, entry.options, entry.work, trigger)

    def _attach(self, name: str, options: LockOptions, work: Work, trigger: Any) -> ExecutionGate:
        gate = ExecutionGate(self.coordinator, options, work, name=name)
        self._bindings.append(_Binding(gate=gate, trigger=trigger))
        logger.info("job_guarded", job=name, key=options.key, trigger=trigger.name)
        if self._running:
            trigger.start(gate.fire)
        return gate

    @property
    def gates(self) -> list[ExecutionGate]:
        return [b.gate for b in self._bindings]

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start every trigger."""
        if self._running:
            logger.warning("job_service_already_running")
            return
        for binding in self._bindings:
            binding.trigger.start(binding.gate.fire)
        self._running = True
        logger.info("job_service_started", jobs=len(self._bindings), instance_id=self.coordinator.instance_id)

    def stop(self) -> None:
        """Stop every trigger; in-flight runs finish and release their locks."""
        if not self._running:
            return
        for binding in self._bindings:
            binding.trigger.stop()
        self._running = False
        logger.info("job_service_stopped")

    def health(self) -> dict[str, Any]:
        """Coordinator health plus per-job trigger health and gate stats."""
        coordinator = self.coordinator.health()
        jobs = {
            b.gate.name: {
                "key": b.gate.options.key,
                "trigger": b.trigger.health(),
                "stats": b.gate.stats.to_dict(),
            }
            for b in self._bindings
        }
        return {
            "healthy": self._running and coordinator["healthy"],
            "running": self._running,
            "coordinator": coordinator,
            "jobs": jobs,
        }


__all__ = ["LockedJobService"]
