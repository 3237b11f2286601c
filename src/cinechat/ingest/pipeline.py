"""Document ingestion and management.

``DocumentService.ingest`` runs the whole pipeline synchronously:

  validate → extract text → create Document (PROCESSING) → chunk → embed
  → store chunks atomically → COMPLETED → invalidate chunk cache

Any failure after the document row exists deletes its chunks and marks it
FAILED before the error propagates, so a failed document never exposes
chunks to retrieval.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from cinechat.config import ChunkCfg, IngestCfg, PaginationCfg
from cinechat.db.models import Document, DocumentChunk, DocumentStatus
from cinechat.db.repository import DocumentRepository
from cinechat.errors import NotFoundError, ValidationError
from cinechat.ingest.chunking import ChunkConfig, split_into_chunks
from cinechat.ingest.extract import extract_text
from cinechat.rag.embedder import Embedder
from cinechat.rag.retriever import RetrievalEngine
from cinechat.validation import (
    clamp_pagination,
    is_allowed_extension,
    sanitize_filename,
    validate_title,
)

logger = logging.getLogger(__name__)


class DocumentService:
    """Ingest, list, inspect and delete knowledge-base documents.

    Args:
        repo: Document/chunk repository.
        embedder: Embeds chunk contents.
        engine: Retrieval engine whose chunk cache is invalidated on change.
        ingest: Upload limits.
        chunk: Chunker settings.
        pagination: Listing defaults and caps.
    """

    def __init__(
        self,
        repo: DocumentRepository,
        embedder: Embedder,
        engine: RetrievalEngine,
        ingest: IngestCfg | None = None,
        chunk: ChunkCfg | None = None,
        pagination: PaginationCfg | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._engine = engine
        self._ingest = ingest or IngestCfg()
        chunk = chunk or ChunkCfg()
        self._chunk_config = ChunkConfig(
            max_size=chunk.max_size,
            overlap=chunk.overlap,
            min_size=chunk.min_size,
            method=chunk.method,
            separators=chunk.separators,
        )
        self._pagination = pagination or PaginationCfg()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, path: Path, title: str | None = None) -> Document:
        """Ingest the file at *path* under *title* and return the COMPLETED document.

        Without a title the sanitised file stem is used.

        Raises:
            ValidationError: Missing file, disallowed type, too large, bad title,
                or undecodable content. Nothing is stored.
            UpstreamError, StorageError, ConfigError: During chunk embedding or
                storage; the document is left FAILED with no chunks.
        """
        path = Path(path)
        clean_title = validate_title(title if title is not None else sanitize_filename(path.stem))
        size = self._check_file(path)
        text = extract_text(path)
        if not text.strip():
            raise ValidationError(
                f"{path.name} contains no extractable text", action="ingest document"
            )

        document = Document(
            id=str(uuid.uuid4()),
            title=clean_title,
            path=str(path),
            type=path.suffix.lower(),
            size_bytes=size,
        )
        self._repo.create_document(document)
        logger.info("Ingesting '%s' as document %s", path.name, document.id)

        try:
            stored = self._store_chunks(document, text)
            self._repo.update_status(document.id, DocumentStatus.COMPLETED)
            self._engine.invalidate_chunk_cache()
        except Exception:
            logger.error("Ingestion failed for document %s", document.id, exc_info=True)
            self._mark_failed(document.id)
            raise

        document.status = DocumentStatus.COMPLETED
        logger.info("Document %s completed with %d chunk(s)", document.id, stored)
        return document

    def _check_file(self, path: Path) -> int:
        if not path.is_file():
            raise ValidationError(f"File does not exist: {path}", action="ingest document")
        if not is_allowed_extension(path.name, self._ingest.allowed_extensions):
            allowed = ", ".join(self._ingest.allowed_extensions)
            raise ValidationError(
                f"Unsupported file extension '{path.suffix}' (allowed: {allowed})",
                action="ingest document",
            )
        size = path.stat().st_size
        if size > self._ingest.max_file_size_bytes:
            raise ValidationError(
                f"File too large: {size} bytes (max: {self._ingest.max_file_size_bytes} bytes)",
                action="ingest document",
            )
        return size

    def _store_chunks(self, document: Document, text: str) -> int:
        pieces = split_into_chunks(text, self._chunk_config)
        records: list[DocumentChunk] = []
        for index, piece in enumerate(pieces):
            if piece.oversized:
                logger.warning(
                    "Chunk %d of document %s has no break point and exceeds the "
                    "chunk budget (%d characters)",
                    index,
                    document.id,
                    piece.end_pos - piece.start_pos,
                )
            # Whitespace-only chunks are stored without an embedding.
            embedding = self._embedder.embed(piece.content) if piece.content else []
            records.append(
                DocumentChunk(
                    id=str(uuid.uuid4()),
                    document_id=document.id,
                    chunk_index=index,
                    content=piece.content,
                    embedding=embedding,
                    start_pos=piece.start_pos,
                    end_pos=piece.end_pos,
                    token_count=piece.token_count,
                )
            )
        self._repo.add_chunks(records)
        return len(records)

    def _mark_failed(self, document_id: str) -> None:
        # Runs while another exception propagates; its own failures are logged only.
        try:
            self._repo.delete_chunks_by_document(document_id)
            self._repo.update_status(document_id, DocumentStatus.FAILED)
        except Exception:
            logger.exception("Could not mark document %s as failed", document_id)
        self._engine.invalidate_chunk_cache()

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def get_document(self, document_id: str) -> Document:
        """Return a document by ID.

        Raises:
            NotFoundError: If no such document exists.
        """
        document = self._repo.get_document(document_id)
        if document is None:
            logger.debug("Document %s not found", document_id)
            raise NotFoundError(f"Document {document_id} not found", action="get document")
        return document

    def list_documents(self, limit: int | None = None, offset: int | None = None) -> list[Document]:
        """Return one page of documents, newest first; limits are clamped."""
        p = self._pagination
        limit, offset = clamp_pagination(
            limit,
            offset,
            default_limit=p.default_limit,
            max_limit=p.max_limit,
            default_offset=p.default_offset,
        )
        return self._repo.list_documents(limit, offset)

    def count_documents(self) -> int:
        return self._repo.count_documents()

    def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return the chunks of an existing document in order."""
        self.get_document(document_id)
        return self._repo.get_chunks_by_document(document_id)

    def delete_document(self, document_id: str) -> None:
        """Delete a document and its chunks.

        Raises:
            NotFoundError: If no such document exists.
        """
        if not self._repo.delete_document(document_id):
            logger.debug("Document %s not found for deletion", document_id)
            raise NotFoundError(f"Document {document_id} not found", action="delete document")
        self._engine.invalidate_chunk_cache()
        logger.info("Deleted document %s", document_id)
