"""
CLI: ``fleetlock locks`` — inspect locks in the shared store.
"""

from __future__ import annotations

import typer

from fleetlock.cli.utils import console, err_console, make_coordinator, make_store, output_json, output_table

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_locks(
    redis_url: str | None = typer.Option(None, "--redis-url", help="Override FLEETLOCK_REDIS_URL."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List active (unexpired) locks."""
    coordinator = make_coordinator(redis_url)
    rows = [
        {**record.to_dict(), "remaining_seconds": round(record.remaining_seconds(), 1)}
        for record in coordinator.list_active_locks()
    ]
    if json_out:
        output_json(rows)
        return
    output_table(rows, title="Locks", columns=["key", "owner_id", "expires_at", "remaining_seconds"])


@app.command("status")
def lock_status(
    key: str = typer.Argument(..., help="Lock key"),
    redis_url: str | None = typer.Option(None, "--redis-url", help="Override FLEETLOCK_REDIS_URL."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show whether KEY is locked and by whom."""
    coordinator = make_coordinator(redis_url)
    record = coordinator.get_lock_record(key)
    data = {
        "key": key,
        "locked": record is not None,
        "holder": record.owner_id if record else None,
        "remaining_seconds": round(record.remaining_seconds(), 1) if record else None,
        "degraded": coordinator.degraded,
    }
    if json_out:
        output_json(data)
        return
    if record is None:
        console.print(f"[green]{key}[/green] is free")
    else:
        console.print(
            f"[yellow]{key}[/yellow] is held by [bold]{record.owner_id}[/bold] "
            f"for another {data['remaining_seconds']}s"
        )
    if coordinator.degraded:
        err_console.print("[red]Shared store unreachable; showing process-local state only[/red]")


@app.command("ping")
def ping(
    redis_url: str | None = typer.Option(None, "--redis-url", help="Override FLEETLOCK_REDIS_URL."),
) -> None:
    """Check that the shared store is reachable."""
    store = make_store(redis_url)
    if store is None:
        err_console.print("[yellow]No shared store configured (set FLEETLOCK_REDIS_URL)[/yellow]")
        raise typer.Exit(2)
    if not store.ping():
        err_console.print("[red]Shared store unreachable[/red]")
        raise typer.Exit(1)
    console.print("[green]Shared store reachable[/green]")
