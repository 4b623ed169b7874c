"""
CLI utility helpers — output formatting and coordinator construction.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from fleetlock.core.settings import FleetlockSettings, get_settings
from fleetlock.locking import LockCoordinator, RedisLockStore, create_lock_store

console = Console()
err_console = Console(stderr=True)


def resolve_settings(redis_url: str | None = None) -> FleetlockSettings:
    """Settings with an optional ``--redis-url`` override applied."""
    settings = get_settings()
    if redis_url:
        settings = settings.model_copy(update={"redis_url": redis_url})
    return settings


def make_coordinator(redis_url: str | None = None) -> LockCoordinator:
    """Create a coordinator from settings (plus CLI overrides)."""
    return LockCoordinator.from_settings(resolve_settings(redis_url))


def make_store(redis_url: str | None = None) -> RedisLockStore | None:
    """The configured shared store, or ``None`` when no URL is set."""
    return create_lock_store(resolve_settings(redis_url))


def output_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def output_table(rows: list[dict[str, Any]], *, title: str, columns: list[str]) -> None:
    if not rows:
        console.print(f"[dim]No {title.lower()}[/dim]")
        return
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(str(row.get(column, "")) for column in columns))
    console.print(table)
