"""Cinechat rich error messages and exit codes.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    with handle_errors():
        app.answerer.answer(question)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.markup import escape

from cinechat.config import CREDENTIALS_ENV, ConfigError, MissingCredentialsError
from cinechat.errors import (
    NotFoundError,
    StorageError,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamTimeout,
    ValidationError,
)

err_console = Console(stderr=True)

EXIT_NOT_FOUND = 1
EXIT_VALIDATION = 2
EXIT_CONFIG = 3
EXIT_UPSTREAM = 4
EXIT_STORAGE = 5


def err_validation(exc: ValidationError) -> str:
    return f"[red]Error:[/] {escape(str(exc))}\n  Fix the input and try again."


def err_not_found(exc: NotFoundError) -> str:
    return (
        f"[yellow]Not found:[/] {escape(exc.message)}\n"
        "  Run:  cinechat documents list  to see all documents."
    )


def err_config(exc: ConfigError) -> str:
    return f"[red]Configuration error:[/] {escape(str(exc))}"


def err_no_credentials() -> str:
    """Credential pool is empty."""
    return (
        "[red]Error:[/] No API credentials configured.\n"
        f"  Set:  export {CREDENTIALS_ENV}=<key1>,<key2>"
    )


def err_upstream(exc: UpstreamError) -> str:
    if isinstance(exc, UpstreamTimeout):
        hint = "Try again, or raise llm.timeout_seconds in cinechat.yaml."
    elif isinstance(exc, UpstreamRateLimited):
        hint = f"Every credential was rate limited. Wait, or add keys to {CREDENTIALS_ENV}."
    else:
        hint = "Check the model names in cinechat.yaml and your network connection."
    return f"[red]Upstream error:[/] {escape(str(exc))}\n  {hint}"


def err_storage(exc: StorageError) -> str:
    return (
        f"[red]Storage error:[/] {escape(str(exc))}\n"
        "  Check that the database file is writable and not locked by another process."
    )


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print a cinechat error as an actionable message and exit with its code."""
    try:
        yield
    except ValidationError as exc:
        err_console.print(err_validation(exc))
        raise typer.Exit(EXIT_VALIDATION) from exc
    except NotFoundError as exc:
        err_console.print(err_not_found(exc))
        raise typer.Exit(EXIT_NOT_FOUND) from exc
    except MissingCredentialsError as exc:
        err_console.print(err_no_credentials())
        raise typer.Exit(EXIT_CONFIG) from exc
    except ConfigError as exc:
        err_console.print(err_config(exc))
        raise typer.Exit(EXIT_CONFIG) from exc
    except UpstreamError as exc:
        err_console.print(err_upstream(exc))
        raise typer.Exit(EXIT_UPSTREAM) from exc
    except StorageError as exc:
        err_console.print(err_storage(exc))
        raise typer.Exit(EXIT_STORAGE) from exc
