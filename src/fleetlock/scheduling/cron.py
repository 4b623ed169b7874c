"""Cron-expression trigger.

Uses ``croniter`` to compute the next fire time after each run. Every
instance in the fleet evaluates the same expression against its own clock,
so they all wake at roughly the same moment and the lock decides which one
runs.
"""

from __future__ import annotations

import zoneinfo
from datetime import UTC, datetime
from typing import Any

from croniter import croniter

from fleetlock.core.errors import TriggerConfigError

from .thread_backend import ThreadTrigger


class CronTrigger(ThreadTrigger):
    """Fires on a 5-field cron schedule.

    Example:
        >>> trigger = CronTrigger("0 2 * * *")          # every day at 02:00 UTC
        >>> trigger.next_fire_time(datetime(2025, 1, 1, 3, tzinfo=UTC))
        datetime.datetime(2025, 1, 2, 2, 0, tzinfo=datetime.timezone.utc)
    """

    name = "cron"

    def __init__(
        self,
        expression: str,
        *,
        timezone: str = "UTC",
        stop_timeout: float = 5.0,
    ) -> None:
        if not croniter.is_valid(expression):
            raise TriggerConfigError(f"Invalid cron expression: {expression!r}")
        try:
            self._tz = UTC if timezone == "UTC" else zoneinfo.ZoneInfo(timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise TriggerConfigError(f"Unknown timezone: {timezone!r}", cause=e) from e

        super().__init__(stop_timeout=stop_timeout)
        self.expression = expression
        self.timezone = timezone

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Next fire time strictly after ``after`` (default: now), in UTC."""
        after = after or datetime.now(UTC)
        cron = croniter(self.expression, after.astimezone(self._tz))
        next_run = cron.get_next(datetime)
        return next_run.astimezone(UTC)

    def _next_delay(self) -> float:
        now = datetime.now(UTC)
        return max(0.0, (self.next_fire_time(now) - now).total_seconds())

    def _describe(self) -> dict[str, Any]:
        return {"expression": self.expression, "timezone": self.timezone}
