"""
CLI: ``fleetlock run`` — run a command while holding a lock.

    fleetlock run nightly-report --ttl 1800 -- python -m reports.nightly
    fleetlock run sync --cron "*/5 * * * *" -- ./sync.sh
"""

from __future__ import annotations

import subprocess
import threading

import typer

from fleetlock.cli.utils import console, err_console, make_coordinator, resolve_settings
from fleetlock.core.errors import FleetlockError
from fleetlock.locking import ExecutionGate, LockedJobService, LockOptions
from fleetlock.scheduling import CronTrigger, IntervalTrigger


def run_command(
    key: str = typer.Argument(..., help="Lock key"),
    command: list[str] = typer.Argument(..., help="Command to run (after --)"),
    ttl: float | None = typer.Option(None, "--ttl", help="Lock TTL in seconds."),
    retries: int | None = typer.Option(None, "--retries", help="Extra acquire attempts."),
    retry_delay_ms: int | None = typer.Option(None, "--retry-delay-ms", help="Delay between attempts."),
    interval: float | None = typer.Option(None, "--interval", help="Repeat every N seconds."),
    cron: str | None = typer.Option(None, "--cron", help="Repeat on a cron schedule."),
    redis_url: str | None = typer.Option(None, "--redis-url", help="Override FLEETLOCK_REDIS_URL."),
) -> None:
    """Run COMMAND under lock KEY, once or on a schedule."""
    if interval is not None and cron is not None:
        raise typer.BadParameter("use either --interval or --cron, not both")

    settings = resolve_settings(redis_url)
    try:
        options = LockOptions.from_settings(
            key, settings, ttl_seconds=ttl, max_retries=retries, retry_delay_ms=retry_delay_ms
        )
    except FleetlockError as e:
        raise typer.BadParameter(e.message) from e

    trigger = None
    if interval is not None or cron is not None:
        try:
            trigger = IntervalTrigger(interval) if interval is not None else CronTrigger(cron)
        except FleetlockError as e:
            raise typer.BadParameter(e.message) from e

    def work() -> None:
        subprocess.run(command, check=True)

    coordinator = make_coordinator(redis_url)

    if trigger is None:
        gate = ExecutionGate(coordinator, options, work, name=key)
        try:
            ran = gate.run()
        except subprocess.CalledProcessError as e:
            raise typer.Exit(e.returncode) from e
        except FileNotFoundError as e:
            err_console.print(f"[red]{e}[/red]")
            raise typer.Exit(127) from e
        finally:
            coordinator.close()
        if not ran:
            console.print(f"[yellow]Skipped:[/yellow] {key} is held by another instance")
        return

    service = LockedJobService(coordinator)
    service.guard(options, work, trigger, name=key)
    service.start()
    console.print(f"Guarding [bold]{key}[/bold] on {trigger.name} trigger (Ctrl+C to stop)")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        coordinator.close()
