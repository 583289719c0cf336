"""
Root Typer application for the notify-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="notify-spine",
    help="notify-spine: change-driven REST API synchronization.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from notify_spine import __version__

        typer.echo(f"notify-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """notify-spine CLI: manage the schema, sync tasks and workers."""


# ── Sub-command registration ─────────────────────────────────────────────

from notify_spine.cli.db import app as db_app  # noqa: E402
from notify_spine.cli.tasks import app as tasks_app  # noqa: E402
from notify_spine.cli.worker import worker  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(tasks_app, name="tasks", help="Sync task inspection and recovery.")
app.command("worker", help="Run the Celery worker.")(worker)
