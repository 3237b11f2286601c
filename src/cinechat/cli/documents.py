"""cinechat documents CLI commands.

Commands:
  cinechat documents list [--limit N --offset N]  — newest documents first
  cinechat documents show <id> [--chunks]         — document details
  cinechat documents delete <id> [--yes]          — remove a document and its chunks
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cinechat.cli.context import open_app
from cinechat.db.models import DocumentStatus

console = Console()

documents_app = typer.Typer(
    name="documents",
    help="Manage knowledge-base documents (list, show, delete).",
    add_completion=False,
)

_STATUS_STYLE = {
    DocumentStatus.PROCESSING: "[yellow]processing[/]",
    DocumentStatus.COMPLETED: "[green]completed[/]",
    DocumentStatus.FAILED: "[red]failed[/]",
}


@documents_app.command("list")
def documents_list_cmd(
    ctx: typer.Context,
    limit: Annotated[
        int | None,
        typer.Option("--limit", help="Page size (capped by pagination.max_limit)."),
    ] = None,
    offset: Annotated[
        int | None,
        typer.Option("--offset", help="Number of documents to skip."),
    ] = None,
) -> None:
    """List documents, newest first."""
    with open_app(ctx) as app:
        documents = app.document_service.list_documents(limit, offset)
        total = app.document_service.count_documents()

    if not documents:
        console.print(
            "[yellow]No documents found.[/]\n"
            "  Run:  cinechat ingest PATH --title TITLE"
        )
        raise typer.Exit(0)

    table = Table(
        title="Documents",
        caption=f"Showing {len(documents)} of {total} document{'s' if total != 1 else ''}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("ID", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Size", justify="right")
    table.add_column("Created")

    for doc in documents:
        table.add_row(
            doc.id,
            escape(doc.title),
            doc.type,
            _STATUS_STYLE[doc.status],
            f"{doc.size_bytes:,} B",
            doc.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@documents_app.command("show")
def documents_show_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document ID.")],
    chunks: Annotated[
        bool,
        typer.Option("--chunks", help="Also print every chunk."),
    ] = False,
) -> None:
    """Show one document and its chunk count."""
    with open_app(ctx) as app:
        doc = app.document_service.get_document(document_id)
        doc_chunks = app.document_service.get_document_chunks(document_id)

    lines = [
        f"Title:   [bold]{escape(doc.title)}[/]",
        f"Path:    {escape(doc.path)}",
        f"Type:    {doc.type}",
        f"Size:    {doc.size_bytes:,} bytes",
        f"Status:  {_STATUS_STYLE[doc.status]}",
        f"Chunks:  {len(doc_chunks)}",
        f"Created: {doc.created_at.isoformat(timespec='seconds')}",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold]{doc.id}[/]", expand=False))

    if chunks:
        for chunk in doc_chunks:
            console.print(
                f"\n[bold]#{chunk.chunk_index}[/] [dim]"
                f"[{chunk.start_pos}:{chunk.end_pos}] ~{chunk.token_count} tokens[/]"
            )
            console.print(escape(chunk.content))


@documents_app.command("delete")
def documents_delete_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document ID.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete a document and all of its chunks."""
    with open_app(ctx) as app:
        doc = app.document_service.get_document(document_id)
        if not yes and not typer.confirm(f"Delete '{doc.title}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        app.document_service.delete_document(document_id)

    console.print(f"[green]✓[/] Deleted [bold]{escape(doc.title)}[/]")
