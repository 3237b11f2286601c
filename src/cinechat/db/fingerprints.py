"""Exact-match answer cache keyed by question fingerprint.

A fingerprint is the SHA-256 of the normalised question text, so rewording
that only changes case or spacing still hits the same ChatRecord.
"""

from __future__ import annotations

import hashlib
import logging
import re
import sqlite3
from datetime import datetime

from cinechat.db.connection import Database
from cinechat.db.models import ChatRecord
from cinechat.db.repository import storage_errors
from cinechat.db.vectors import decode_embedding, encode_embedding, vec_json_column

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

_SELECT_CHAT = (
    "SELECT id, question, answer, "
    + vec_json_column("embedding_question")
    + ", created_at FROM chats"
)


def normalize_question(question: str) -> str:
    """Lower-case, collapse whitespace runs, and trim."""
    return _WHITESPACE_RE.sub(" ", question).strip().lower()


def fingerprint(question: str) -> str:
    """Deterministic cache key for *question*."""
    return hashlib.sha256(normalize_question(question).encode("utf-8")).hexdigest()


class FingerprintStore:
    """Durable question → answer store with idempotent upserts.

    At most one ChatRecord exists per fingerprint. A later upsert replaces
    ``answer`` and ``embedding_question``; ``question`` and ``created_at``
    keep the values of the first write. Concurrent upserts for the same
    fingerprint resolve as last-write-wins.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert(self, record: ChatRecord) -> None:
        """Insert *record* or update the answer of an existing fingerprint.

        Raises:
            StorageError: On any persistence failure; nothing is written.
        """
        with storage_errors("upsert chat record"), self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO chats (id, question, answer, embedding_question, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    answer = excluded.answer,
                    embedding_question = excluded.embedding_question
                """,
                (
                    record.id,
                    record.question,
                    record.answer,
                    encode_embedding(record.embedding_question),
                    record.created_at.isoformat(),
                ),
            )

    def get_by_fingerprint(self, fingerprint_id: str) -> ChatRecord | None:
        """Return the record for *fingerprint_id*, or None on a miss."""
        with storage_errors("get chat record"), self._db.transaction() as conn:
            row = conn.execute(f"{_SELECT_CHAT} WHERE id = ?", (fingerprint_id,)).fetchone()
        if row is None:
            logger.debug("Fingerprint miss: %s", fingerprint_id[:12])
            return None
        return _row_to_chat(row)

    def get_recent_with_embedding(self, limit: int) -> list[ChatRecord]:
        """Return up to *limit* newest records that carry an embedding.

        The list is a snapshot; later writes are not reflected in it.
        """
        if limit <= 0:
            return []
        with storage_errors("list recent chat records"), self._db.transaction() as conn:
            rows = conn.execute(
                f"""
                {_SELECT_CHAT}
                WHERE embedding_question IS NOT NULL AND length(embedding_question) > 0
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_chat(r) for r in rows]

    def count(self) -> int:
        with storage_errors("count chat records"), self._db.transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM chats").fetchone()[0]


def _row_to_chat(row: sqlite3.Row) -> ChatRecord:
    return ChatRecord(
        id=row["id"],
        question=row["question"],
        answer=row["answer"],
        embedding_question=decode_embedding(row["embedding_question"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
