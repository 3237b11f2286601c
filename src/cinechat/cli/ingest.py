"""cinechat ingest — add a .txt, .md or .pdf document to the knowledge base."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from cinechat.cli.context import open_app

console = Console()


def ingest_cmd(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(help="File to ingest (.txt, .md or .pdf)."),
    ],
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Document title (default: file name)."),
    ] = None,
) -> None:
    """Extract, chunk and embed a document so answers can be grounded on it."""
    with open_app(ctx) as app:
        document = app.document_service.ingest(path, title or None)
        chunks = app.documents.count_chunks_by_document(document.id)

    console.print(
        f"[green]✓[/] Ingested [bold]{escape(document.title)}[/] "
        f"({chunks} chunk{'s' if chunks != 1 else ''})\n"
        f"  id: {document.id}"
    )
