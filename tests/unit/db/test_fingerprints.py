"""Tests for the fingerprint-keyed answer store."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timedelta, timezone

import pytest

from cinechat.db.fingerprints import FingerprintStore, fingerprint, normalize_question
from cinechat.db.models import ChatRecord
from cinechat.errors import StorageError

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_db):
    return FingerprintStore(tmp_db)


def _record(question="What time does the cinema open?", answer="At 9am.", embedding=None, at=_T0):
    return ChatRecord(
        id=fingerprint(question),
        question=question,
        answer=answer,
        embedding_question=[0.1, 0.2, 0.3] if embedding is None else embedding,
        created_at=at,
    )


# ------------------------------------------------------------------
# fingerprint()
# ------------------------------------------------------------------


def test_fingerprint_ignores_case_and_spacing():
    assert fingerprint("  What TIME   is it? ") == fingerprint("what time is it?")


def test_fingerprint_differs_for_different_questions():
    assert fingerprint("price of tickets") != fingerprint("price of popcorn")


def test_fingerprint_is_sha256_hex():
    fp = fingerprint("hello")
    assert len(fp) == 64
    int(fp, 16)


def test_normalize_question():
    assert normalize_question(" A\tB\n\nC ") == "a b c"


# ------------------------------------------------------------------
# upsert / get
# ------------------------------------------------------------------


def test_get_miss_returns_none(store):
    assert store.get_by_fingerprint(fingerprint("never asked")) is None


def test_upsert_then_get(store):
    rec = _record()
    store.upsert(rec)
    got = store.get_by_fingerprint(rec.id)
    assert got is not None
    assert got.question == rec.question
    assert got.answer == "At 9am."
    assert got.embedding_question == pytest.approx([0.1, 0.2, 0.3])
    assert got.created_at == _T0


def test_upsert_is_idempotent(store):
    rec = _record()
    store.upsert(rec)
    store.upsert(rec)
    assert store.count() == 1
    assert store.get_by_fingerprint(rec.id).answer == rec.answer


def test_upsert_replaces_answer_and_embedding_only(store):
    store.upsert(_record())
    later = _record(
        question="what time does the cinema open?",
        answer="At 10am on weekends.",
        embedding=[0.9, 0.8, 0.7],
        at=_T0 + timedelta(days=1),
    )
    store.upsert(later)

    got = store.get_by_fingerprint(later.id)
    assert store.count() == 1
    assert got.answer == "At 10am on weekends."
    assert got.embedding_question == pytest.approx([0.9, 0.8, 0.7])
    assert got.question == "What time does the cinema open?"
    assert got.created_at == _T0


def test_record_without_embedding_round_trips(store):
    rec = _record(embedding=[])
    store.upsert(rec)
    assert store.get_by_fingerprint(rec.id).embedding_question == []


# ------------------------------------------------------------------
# get_recent_with_embedding
# ------------------------------------------------------------------


def test_recent_newest_first_and_limited(store):
    for i in range(5):
        store.upsert(_record(question=f"question number {i}", at=_T0 + timedelta(minutes=i)))

    recent = store.get_recent_with_embedding(3)
    assert [r.question for r in recent] == [
        "question number 4",
        "question number 3",
        "question number 2",
    ]


def test_recent_skips_records_without_embedding(store):
    store.upsert(_record(question="with vector"))
    store.upsert(_record(question="without vector", embedding=[], at=_T0 + timedelta(hours=1)))

    recent = store.get_recent_with_embedding(10)
    assert [r.question for r in recent] == ["with vector"]


def test_recent_with_zero_limit(store):
    store.upsert(_record())
    assert store.get_recent_with_embedding(0) == []


def test_recent_is_a_snapshot(store):
    store.upsert(_record(question="first question"))
    snapshot = store.get_recent_with_embedding(10)
    store.upsert(_record(question="second question", at=_T0 + timedelta(hours=1)))
    assert len(snapshot) == 1


# ------------------------------------------------------------------
# Errors and concurrency
# ------------------------------------------------------------------


def test_storage_failure_wrapped(store, tmp_db):
    with tmp_db.transaction() as conn:
        conn.execute("DROP TABLE chats")

    with pytest.raises(StorageError) as excinfo:
        store.upsert(_record())
    assert excinfo.value.action == "upsert chat record"
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_concurrent_upserts_same_fingerprint(store):
    answers = [f"answer {i}" for i in range(10)]

    def worker(answer: str) -> None:
        store.upsert(_record(answer=answer))

    threads = [threading.Thread(target=worker, args=(a,)) for a in answers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.count() == 1
    assert store.get_by_fingerprint(fingerprint("What time does the cinema open?")).answer in answers
