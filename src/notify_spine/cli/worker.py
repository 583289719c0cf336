"""
CLI: ``notify-spine worker`` - run the Celery worker that executes tasks.
"""

from __future__ import annotations

import typer

from notify_spine.cli.utils import console, fail


def worker(
    concurrency: int = typer.Option(4, "--concurrency", "-c", help="Worker processes"),
    queue: str | None = typer.Option(None, "--queue", "-Q", help="Queue to consume"),
    loglevel: str | None = typer.Option(None, "--loglevel", "-l"),
) -> None:
    """Start a Celery worker for ``notify_spine.tasks``.

    Example::

        NOTIFY_BACKEND_TYPE=celery notify-spine worker --concurrency 8
    """
    from notify_spine.config import get_settings

    settings = get_settings()
    if settings.backend_type != "celery":
        fail("The worker needs NOTIFY_BACKEND_TYPE=celery")

    from notify_spine.celery_app import celery_app
    from notify_spine.logging import configure_logging
    from notify_spine.runtime import import_models

    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    import_models(settings)

    queue = queue or settings.celery_task_default_queue
    console.print(
        f"[bold green]Starting notify-spine worker[/bold green] "
        f"(concurrency={concurrency}, queue={queue})"
    )
    celery_app.worker_main(
        argv=[
            "worker",
            f"--concurrency={concurrency}",
            f"--queues={queue}",
            f"--loglevel={(loglevel or settings.log_level).upper()}",
        ]
    )
