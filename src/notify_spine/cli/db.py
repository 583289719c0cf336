"""
CLI: ``notify-spine db`` - database management commands.
"""

from __future__ import annotations

import typer

from notify_spine.cli.utils import console, get_engine

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
) -> None:
    """Create the task and sync log tables (and tables of imported models)."""
    from notify_spine.orm.base import NotifyBase
    from notify_spine.runtime import import_models

    modules = import_models()
    engine = get_engine(database)
    try:
        NotifyBase.metadata.create_all(engine)
        tables = sorted(NotifyBase.metadata.tables)
    finally:
        engine.dispose()

    console.print(f"[green]Initialised {len(tables)} table(s)[/green]: {', '.join(tables)}")
    if modules:
        console.print(f"[dim]Models from: {', '.join(modules)}[/dim]")
