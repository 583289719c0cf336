"""
CLI layer for notify-spine.

A Typer application for operating the sync engine: creating the schema,
inspecting and recovering tasks, and running the Celery worker.

Entry point::

    notify-spine --help
"""

from notify_spine.cli.app import app

__all__ = ["app"]
