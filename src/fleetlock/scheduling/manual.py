"""On-demand trigger.

``ManualTrigger`` fires only when its owner awaits :meth:`fire` (an API
handler, a CLI command, a test). Exceptions raised by the guarded work reach
the awaiting caller unchanged.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fleetlock.core.errors import TriggerConfigError

from .protocol import TriggerCallback, TriggerHealth


class ManualTrigger:
    """Trigger fired explicitly by the caller."""

    name = "manual"

    def __init__(self) -> None:
        self._callback: TriggerCallback | None = None
        self._fire_count = 0
        self._failure_count = 0
        self._last_fire: datetime | None = None
        self._last_error: str | None = None

    def start(self, callback: TriggerCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    async def fire(self) -> Any:
        """Invoke the bound callback once and return its result."""
        if self._callback is None:
            raise TriggerConfigError("ManualTrigger is not started")

        self._fire_count += 1
        self._last_fire = datetime.now(UTC)
        try:
            return await self._callback()
        except Exception as e:
            self._failure_count += 1
            self._last_error = f"{type(e).__name__}: {e}"
            raise

    def health(self) -> dict[str, Any]:
        return TriggerHealth(
            healthy=self.is_running,
            trigger=self.name,
            fire_count=self._fire_count,
            failure_count=self._failure_count,
            last_fire=self._last_fire,
            last_error=self._last_error,
        ).to_dict()
