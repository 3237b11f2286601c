"""Repository for documents and their chunks.

Every method runs inside ``Database.transaction()``; sqlite3 failures are
re-raised as StorageError with the failing action attached.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from cinechat.db.connection import Database
from cinechat.db.models import Document, DocumentChunk, DocumentStatus
from cinechat.db.vectors import decode_embedding, encode_embedding, vec_json_column
from cinechat.errors import NotFoundError, StorageError

_DOCUMENT_COLUMNS = "id, title, path, type, size_bytes, status, created_at"

_CHUNK_COLUMNS = (
    "c.id, c.document_id, c.chunk_index, c.content, "
    + vec_json_column("c.embedding", "embedding")
    + ", c.start_pos, c.end_pos, c.token_count, c.created_at"
)


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Re-raise any ``sqlite3.Error`` raised inside the block as StorageError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(str(exc), action=action) from exc


class DocumentRepository:
    """Data access layer for Document and DocumentChunk records."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, document: Document) -> None:
        with storage_errors("create document"), self._db.transaction() as conn:
            conn.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    document.id,
                    document.title,
                    document.path,
                    document.type,
                    document.size_bytes,
                    document.status.value,
                    document.created_at.isoformat(),
                ),
            )

    def get_document(self, document_id: str) -> Document | None:
        """Return a document by ID, or None if not found."""
        with storage_errors("get document"), self._db.transaction() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, limit: int, offset: int = 0) -> list[Document]:
        """Return one page of documents, newest first."""
        with storage_errors("list documents"), self._db.transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT {_DOCUMENT_COLUMNS} FROM documents
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    def count_documents(self) -> int:
        with storage_errors("count documents"), self._db.transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def update_status(self, document_id: str, status: DocumentStatus) -> None:
        """Move a document to *status*.

        Only PROCESSING → COMPLETED and PROCESSING → FAILED are allowed.

        Raises:
            NotFoundError: If the document does not exist.
            StorageError: If the transition is not allowed.
        """
        action = f"update document status to {status.value}"
        with storage_errors(action), self._db.transaction() as conn:
            row = conn.execute(
                "SELECT status FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"document {document_id} not found", action=action)
            current = DocumentStatus(row["status"])
            if not current.can_transition_to(status):
                raise StorageError(
                    f"illegal transition {current.value} -> {status.value}", action=action
                )
            conn.execute(
                "UPDATE documents SET status = ? WHERE id = ?", (status.value, document_id)
            )

    def delete_document(self, document_id: str) -> bool:
        """Delete a document and (by cascade) its chunks. Returns True if it existed."""
        with storage_errors("delete document"), self._db.transaction() as conn:
            cur = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: list[DocumentChunk]) -> None:
        """Insert *chunks* atomically; either all are stored or none."""
        if not chunks:
            return
        with storage_errors("store document chunks"), self._db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO document_chunks
                    (id, document_id, chunk_index, content, embedding,
                     start_pos, end_pos, token_count, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        c.id,
                        c.document_id,
                        c.chunk_index,
                        c.content,
                        encode_embedding(c.embedding),
                        c.start_pos,
                        c.end_pos,
                        c.token_count,
                        c.created_at.isoformat(),
                    )
                    for c in chunks
                ],
            )

    def get_chunks_by_document(self, document_id: str) -> list[DocumentChunk]:
        """Return the chunks of *document_id* ordered by chunk_index."""
        with storage_errors("get document chunks"), self._db.transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT {_CHUNK_COLUMNS} FROM document_chunks c
                WHERE c.document_id = ?
                ORDER BY c.chunk_index
                """,
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks_by_document(self, document_id: str) -> int:
        with storage_errors("count document chunks"), self._db.transaction() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM document_chunks WHERE document_id = ?", (document_id,)
            ).fetchone()[0]

    def delete_chunks_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id*. Returns the number deleted."""
        with storage_errors("delete document chunks"), self._db.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            return cur.rowcount

    def list_retrievable_chunks(self) -> list[DocumentChunk]:
        """Return embedded chunks whose parent document is COMPLETED."""
        with storage_errors("list retrievable chunks"), self._db.transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT {_CHUNK_COLUMNS}
                FROM document_chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE d.status = ? AND c.embedding IS NOT NULL
                ORDER BY c.created_at DESC, c.chunk_index
                """,
                (DocumentStatus.COMPLETED.value,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        path=row["path"],
        type=row["type"],
        size_bytes=row["size_bytes"],
        status=DocumentStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_chunk(row: sqlite3.Row) -> DocumentChunk:
    return DocumentChunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        embedding=decode_embedding(row["embedding"]),
        start_pos=row["start_pos"],
        end_pos=row["end_pos"],
        token_count=row["token_count"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
