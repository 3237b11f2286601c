"""Shared CLI state: global options and the per-command application lifetime."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer

from cinechat.cli.errors import handle_errors
from cinechat.config import load_config
from cinechat.container import App, build_app
from cinechat.db.connection import Database
from cinechat.db.schema import initialize


@dataclass
class CliState:
    """Values of the global ``--db`` / ``--verbose`` options."""

    db_path: Path | None = None
    verbose: bool = False


def get_state(ctx: typer.Context) -> CliState:
    return ctx.obj if isinstance(ctx.obj, CliState) else CliState()


@contextmanager
def open_app(ctx: typer.Context) -> Iterator[App]:
    """Load config, open and initialise the database, and yield the wired App.

    Errors raised inside the block are reported via ``handle_errors``.
    """
    state = get_state(ctx)
    with handle_errors():
        config = load_config()
        db_path = state.db_path or Path(config.database.path)
        db = Database(db_path)
        try:
            initialize(db)
            yield build_app(config, db)
        finally:
            db.close()
