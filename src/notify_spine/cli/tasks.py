"""
CLI: ``notify-spine tasks`` - inspect and recover sync tasks.
"""

from __future__ import annotations

import typer

from notify_spine.cli.utils import console, fail, get_session_factory, open_session, output_item, output_items

app = typer.Typer(no_args_is_help=True)

_LIST_COLUMNS = [
    "id",
    "notifiable_type",
    "notifiable_id",
    "endpoint",
    "method",
    "status",
    "attempts",
    "exhausted_at",
]


@app.command("list")
def list_tasks(
    status: str | None = typer.Option(None, "--status", "-s", help="pending, done or failed"),
    endpoint: str | None = typer.Option(None, "--endpoint", "-e"),
    exhausted: bool = typer.Option(False, "--exhausted", help="Only exhausted tasks"),
    limit: int = typer.Option(50, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List sync tasks, newest first."""
    from notify_spine.orm.tables import TaskStatus
    from notify_spine.repository import SyncRepository

    if status is not None and status not in {s.value for s in TaskStatus}:
        fail(f"Unknown status {status!r}")

    with open_session(database) as session:
        tasks = SyncRepository(session).list_tasks(
            status=status,
            endpoint=endpoint,
            exhausted=True if exhausted else None,
            limit=limit,
        )
        items = [task.to_dict() for task in tasks]
    output_items(items, as_json=json_out, title="Sync Tasks", columns=_LIST_COLUMNS)


@app.command("show")
def show(
    task_id: str = typer.Argument(..., help="Task ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one task, including its last response."""
    from notify_spine.repository import SyncRepository

    with open_session(database) as session:
        task = SyncRepository(session).get_task(task_id)
        data = task.to_dict() if task is not None else None
    if data is None:
        fail(f"Task {task_id} not found")
    output_item(data, as_json=json_out, title=f"Task {task_id}")


@app.command("requeue")
def requeue(
    limit: int | None = typer.Option(None, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Enqueue pending tasks again (e.g. after a broker outage)."""
    from notify_spine.runtime import build_dispatcher

    dispatcher = build_dispatcher(session_factory=get_session_factory(database))
    task_ids = dispatcher.requeue_pending(limit=limit)
    console.print(f"[green]Requeued {len(task_ids)} task(s)[/green]")


@app.command("replay")
def replay(
    task_id: str = typer.Argument(..., help="ID of an exhausted task"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Copy an exhausted task into a new pending task and enqueue it."""
    from notify_spine.errors import TaskNotFound
    from notify_spine.orm.tables import InvalidTransitionError
    from notify_spine.runtime import build_dispatcher

    dispatcher = build_dispatcher(session_factory=get_session_factory(database))
    try:
        new_id = dispatcher.replay(task_id)
    except TaskNotFound as exc:
        fail(str(exc))
    except InvalidTransitionError:
        fail(f"Task {task_id} is not exhausted")
    console.print(f"[green]Replayed {task_id} as[/green] {new_id}")
