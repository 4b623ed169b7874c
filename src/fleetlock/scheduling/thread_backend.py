"""Threading-based trigger sources.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD TRIGGER                                                               │
│                                                                               │
│   start(callback)                                                             │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │              Daemon Thread (loop)                       │                │
│   │                                                         │                │
│   │   while not stop_event.wait(next_delay()):              │                │
│   │       fire_count += 1                                   │                │
│   │       asyncio.run(callback())                           │                │
│   │       └── exception → logged, counted, loop continues   │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()  →  stop_event.set(); thread.join(timeout)                          │
│                                                                               │
│  Each trigger owns its own thread, so a slow unit of work (or a slow         │
│  store call) never delays another job's trigger.                             │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from fleetlock.core.errors import TriggerConfigError

from .protocol import TriggerCallback, TriggerHealth

logger = logging.getLogger(__name__)


class ThreadTrigger:
    """Base class for triggers that fire from a daemon thread.

    Subclasses implement :meth:`_next_delay`. Exceptions raised by the
    callback are observed here: logged with traceback, counted, and kept as
    ``last_error``. The loop keeps running.
    """

    name = "thread"

    def __init__(self, *, stop_timeout: float = 5.0) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._started = False
        self._stop_timeout = stop_timeout
        self._fire_count = 0
        self._failure_count = 0
        self._last_fire: datetime | None = None
        self._last_error: str | None = None

    def _next_delay(self) -> float:
        raise NotImplementedError

    def _describe(self) -> dict[str, Any]:
        return {}

    def _fire(self, callback: TriggerCallback) -> None:
        with self._lock:
            self._fire_count += 1
            self._last_fire = datetime.now(UTC)

        try:
            asyncio.run(callback())
        except Exception as e:
            with self._lock:
                self._failure_count += 1
                self._last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"{self.name} trigger callback failed: {e}")

    def _loop(self, callback: TriggerCallback) -> None:
        logger.info(f"{type(self).__name__} started ({self._describe()})")
        while not self._stop_event.wait(self._next_delay()):
            self._fire(callback)
        logger.info(f"{type(self).__name__} stopped")

    def start(self, callback: TriggerCallback) -> None:
        """Start firing ``callback`` from a daemon thread."""
        if self._started:
            logger.warning(f"{type(self).__name__} already started")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            args=(callback,),
            daemon=True,
            name=f"fleetlock-{self.name}",
        )
        self._thread.start()
        self._started = True

    def stop(self) -> None:
        """Stop the loop, waiting up to ``stop_timeout`` for an in-flight run."""
        if not self._started:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._stop_timeout)
            if self._thread.is_alive():
                logger.warning(f"{type(self).__name__} thread did not stop cleanly")

        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def fire_count(self) -> int:
        return self._fire_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def get_health(self) -> TriggerHealth:
        """Return structured health status."""
        return TriggerHealth(
            healthy=self.is_running,
            trigger=self.name,
            fire_count=self._fire_count,
            failure_count=self._failure_count,
            last_fire=self._last_fire,
            last_error=self._last_error,
            extra=self._describe(),
        )

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()


class IntervalTrigger(ThreadTrigger):
    """Fires every ``interval_seconds``.

    Example:
        >>> trigger = IntervalTrigger(30)
        >>> trigger.start(gate.fire)
        >>> # ... later ...
        >>> trigger.stop()
    """

    name = "interval"

    def __init__(
        self,
        interval_seconds: float,
        *,
        run_immediately: bool = False,
        stop_timeout: float = 5.0,
    ) -> None:
        if interval_seconds <= 0:
            raise TriggerConfigError(f"interval_seconds must be > 0, got {interval_seconds!r}")
        super().__init__(stop_timeout=stop_timeout)
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self._first = True

    def _next_delay(self) -> float:
        if self._first:
            self._first = False
            if self.run_immediately:
                return 0.0
        return self.interval_seconds

    def start(self, callback: TriggerCallback) -> None:
        if not self._started:
            self._first = True
        super().start(callback)

    def _describe(self) -> dict[str, Any]:
        return {"interval_seconds": self.interval_seconds}
