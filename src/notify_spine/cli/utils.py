"""
CLI utility helpers: output formatting and session management.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from notify_spine.config import get_settings
from notify_spine.orm.session import create_notify_engine, notify_session_factory

console = Console()
err_console = Console(stderr=True)


# ── Session helpers ──────────────────────────────────────────────────────


def get_engine(database: str | None = None) -> Engine:
    """Engine for *database*, defaulting to ``NOTIFY_DATABASE_URL``."""
    return create_notify_engine(database or get_settings().database_url)


def get_session_factory(database: str | None = None) -> sessionmaker[Any]:
    return notify_session_factory(get_engine(database))


@contextmanager
def open_session(database: str | None = None) -> Iterator[Session]:
    engine = get_engine(database)
    try:
        with notify_session_factory(engine)() as session:
            yield session
    finally:
        engine.dispose()


# ── Output helpers ───────────────────────────────────────────────────────


def fail(message: str, code: int = 1) -> NoReturn:
    """Print *message* as an error and exit."""
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


def output_items(
    items: list[dict[str, Any]],
    *,
    as_json: bool = False,
    title: str = "",
    columns: list[str] | None = None,
) -> None:
    """Render a list of dicts as a table or JSON array."""
    if as_json:
        console.print_json(json.dumps(items, default=str))
        return
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    _print_table(items, title=title, columns=columns)


def output_item(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a single dict as JSON or key-value pairs."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    _print_dict(data, title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list[dict[str, Any]], *, title: str = "", columns: list[str] | None = None) -> None:
    columns = columns or list(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(_cell(item.get(col)) for col in columns))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {_cell(v)}")


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)
