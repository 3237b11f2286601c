"""Cinechat CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from cinechat.cli.ask import ask_cmd
from cinechat.cli.context import CliState
from cinechat.cli.documents import documents_app
from cinechat.cli.ingest import ingest_cmd

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx")


def _installed_version() -> str:
    try:
        return importlib.metadata.version("cinechat")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cinechat {_installed_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send cinechat logs to stderr through rich; DEBUG with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="cinechat",
    help=(
        "Cinechat — cinema help-desk question answering.\n\n"
        "  cinechat ingest   Add a document to the knowledge base.\n"
        "  cinechat ask      Answer a question, reusing cached answers when possible."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the SQLite database (default: database.path from config)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Cinechat — cinema help-desk question answering."""
    ctx.obj = CliState(db_path=db, verbose=verbose)
    configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.add_typer(documents_app, name="documents")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Cinechat version."""
    typer.echo(f"cinechat {_installed_version()}")


if __name__ == "__main__":
    app()
