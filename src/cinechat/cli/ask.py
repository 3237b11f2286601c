"""cinechat ask — answer one question."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from cinechat.cli.context import open_app

console = Console()


def ask_cmd(
    ctx: typer.Context,
    question: Annotated[str, typer.Argument(help="The question to answer.")],
) -> None:
    """Answer QUESTION from the cache or the knowledge base."""
    with open_app(ctx) as app:
        answer = app.answerer.answer(question)

    console.print(escape(answer.answer))
    if answer.cached:
        console.print("[dim](cached)[/]")
