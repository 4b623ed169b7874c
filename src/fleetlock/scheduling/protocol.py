"""Trigger source protocol.

A trigger decides WHEN a guarded unit of work is attempted; the execution
gate decides WHETHER it runs on this instance. Triggers know nothing about
locks.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TRIGGER SOURCES                                                              │
│                                                                               │
│   ┌─────────────────┐      fire()      ┌─────────────────┐                   │
│   │ IntervalTrigger │ ───────────────► │                 │                   │
│   └─────────────────┘                  │  ExecutionGate  │                   │
│   ┌─────────────────┐      fire()      │                 │                   │
│   │ CronTrigger     │ ───────────────► │  - acquire      │                   │
│   └─────────────────┘                  │  - run work     │                   │
│   ┌─────────────────┐      fire()      │  - release      │                   │
│   │ ManualTrigger   │ ───────────────► │                 │                   │
│   └─────────────────┘                  └─────────────────┘                   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TriggerCallback = Callable[[], Awaitable[Any]]


@runtime_checkable
class TriggerSource(Protocol):
    """Protocol for pluggable trigger sources.

    Implementations:
        - IntervalTrigger: fixed interval, daemon thread
        - CronTrigger: cron expression, daemon thread
        - ManualTrigger: fires only when awaited
    """

    name: str

    def start(self, callback: TriggerCallback) -> None:
        """Start invoking ``callback``."""
        ...

    def stop(self) -> None:
        """Stop gracefully; wait for an in-flight callback to finish."""
        ...

    def health(self) -> dict[str, Any]:
        """Return trigger health status (at least ``healthy`` and ``trigger``)."""
        ...


@dataclass
class TriggerHealth:
    """Structured trigger health response."""

    healthy: bool
    trigger: str
    fire_count: int = 0
    failure_count: int = 0
    last_fire: datetime | None = None
    last_error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "healthy": self.healthy,
            "trigger": self.trigger,
            "fire_count": self.fire_count,
            "failure_count": self.failure_count,
            "last_fire": self.last_fire.isoformat() if self.last_fire else None,
            "last_error": self.last_error,
            **self.extra,
        }
