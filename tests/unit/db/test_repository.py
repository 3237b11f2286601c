"""Tests for the document/chunk repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cinechat.db.models import Document, DocumentChunk, DocumentStatus
from cinechat.db.repository import DocumentRepository
from cinechat.errors import NotFoundError, StorageError

_T0 = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def repo(tmp_db):
    return DocumentRepository(tmp_db)


def _doc(id="doc-1", title="FAQ", at=_T0, status=DocumentStatus.PROCESSING):
    return Document(
        id=id, title=title, path=f"/tmp/{id}.txt", type=".txt", size_bytes=120,
        status=status, created_at=at,
    )


def _chunk(document_id="doc-1", index=0, content="hello world", embedding=None):
    return DocumentChunk(
        id=f"{document_id}-c{index}",
        document_id=document_id,
        chunk_index=index,
        content=content,
        embedding=[1.0, 0.0] if embedding is None else embedding,
        start_pos=index * 10,
        end_pos=index * 10 + 11,
        token_count=2,
        created_at=_T0,
    )


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------


def test_create_and_get_document(repo):
    repo.create_document(_doc())
    got = repo.get_document("doc-1")
    assert got is not None
    assert got.title == "FAQ"
    assert got.status is DocumentStatus.PROCESSING
    assert got.created_at == _T0


def test_get_document_not_found(repo):
    assert repo.get_document("missing") is None


def test_list_documents_newest_first_with_pagination(repo):
    for i in range(5):
        repo.create_document(_doc(id=f"doc-{i}", at=_T0 + timedelta(minutes=i)))

    page = repo.list_documents(limit=2, offset=1)
    assert [d.id for d in page] == ["doc-3", "doc-2"]
    assert repo.count_documents() == 5


def test_update_status_processing_to_completed(repo):
    repo.create_document(_doc())
    repo.update_status("doc-1", DocumentStatus.COMPLETED)
    assert repo.get_document("doc-1").status is DocumentStatus.COMPLETED


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (DocumentStatus.PROCESSING, DocumentStatus.COMPLETED, True),
        (DocumentStatus.PROCESSING, DocumentStatus.FAILED, True),
        (DocumentStatus.PROCESSING, DocumentStatus.PROCESSING, False),
        (DocumentStatus.COMPLETED, DocumentStatus.FAILED, False),
        (DocumentStatus.FAILED, DocumentStatus.COMPLETED, False),
        (DocumentStatus.COMPLETED, DocumentStatus.PROCESSING, False),
    ],
)
def test_status_transitions(current, target, allowed):
    assert current.can_transition_to(target) is allowed
    assert current.is_terminal is (current is not DocumentStatus.PROCESSING)


@pytest.mark.parametrize("terminal", [DocumentStatus.COMPLETED, DocumentStatus.FAILED])
def test_terminal_status_cannot_change(repo, terminal):
    repo.create_document(_doc())
    repo.update_status("doc-1", terminal)
    with pytest.raises(StorageError, match="illegal transition"):
        repo.update_status("doc-1", DocumentStatus.PROCESSING)
    assert repo.get_document("doc-1").status is terminal


def test_update_status_missing_document(repo):
    with pytest.raises(NotFoundError):
        repo.update_status("missing", DocumentStatus.COMPLETED)


def test_delete_document_cascades_chunks(repo):
    repo.create_document(_doc())
    repo.add_chunks([_chunk(index=0), _chunk(index=1)])
    assert repo.delete_document("doc-1") is True
    assert repo.count_chunks_by_document("doc-1") == 0
    assert repo.delete_document("doc-1") is False


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------


def test_add_and_get_chunks_in_order(repo):
    repo.create_document(_doc())
    repo.add_chunks([_chunk(index=1, content="second"), _chunk(index=0, content="first")])

    chunks = repo.get_chunks_by_document("doc-1")
    assert [c.chunk_index for c in chunks] == [0, 1]
    assert [c.content for c in chunks] == ["first", "second"]
    assert chunks[0].embedding == pytest.approx([1.0, 0.0])


def test_add_chunks_is_atomic(repo):
    repo.create_document(_doc())
    clashing = DocumentChunk(id="other-id", document_id="doc-1", chunk_index=1, content="dup")
    with pytest.raises(StorageError):
        repo.add_chunks([_chunk(index=0), _chunk(index=1), clashing])
    assert repo.count_chunks_by_document("doc-1") == 0


def test_add_chunks_unknown_document_fails(repo):
    with pytest.raises(StorageError):
        repo.add_chunks([_chunk(document_id="ghost")])


def test_delete_chunks_by_document(repo):
    repo.create_document(_doc())
    repo.add_chunks([_chunk(index=0), _chunk(index=1)])
    assert repo.delete_chunks_by_document("doc-1") == 2
    assert repo.get_chunks_by_document("doc-1") == []


def test_retrievable_chunks_only_from_completed_documents(repo):
    repo.create_document(_doc(id="done"))
    repo.create_document(_doc(id="pending"))
    repo.create_document(_doc(id="broken"))
    repo.add_chunks([_chunk(document_id="done"), _chunk(document_id="pending"),
                     _chunk(document_id="broken")])
    repo.update_status("done", DocumentStatus.COMPLETED)
    repo.update_status("broken", DocumentStatus.FAILED)

    retrievable = repo.list_retrievable_chunks()
    assert [c.document_id for c in retrievable] == ["done"]


def test_retrievable_chunks_skip_missing_embeddings(repo):
    repo.create_document(_doc())
    repo.add_chunks([_chunk(index=0), _chunk(index=1, embedding=[])])
    repo.update_status("doc-1", DocumentStatus.COMPLETED)
    assert [c.chunk_index for c in repo.list_retrievable_chunks()] == [0]
