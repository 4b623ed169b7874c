"""
Root Typer application for the fleetlock CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from fleetlock.core.logging import bind_context, clear_context, configure_logging
from fleetlock.core.settings import get_settings

app = Typer(
    name="fleetlock",
    help="fleetlock — run a job on at most one worker of a fleet at a time.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from fleetlock import __version__

        typer.echo(f"fleetlock {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override FLEETLOCK_LOG_LEVEL."),
) -> None:
    """fleetlock CLI — inspect locks and run commands under a lock."""
    clear_context()
    bind_context(cli_command=ctx.invoked_subcommand)
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.json_logs,
        service="fleetlock-cli",
    )


# ── Sub-command registration ─────────────────────────────────────────────

from fleetlock.cli.locks import app as locks_app  # noqa: E402
from fleetlock.cli.run import run_command  # noqa: E402

app.add_typer(locks_app, name="locks", help="Inspect locks in the shared store.")
app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(run_command)


if __name__ == "__main__":
    app()
