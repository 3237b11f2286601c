"""Tests for embedding (de)serialisation."""

from __future__ import annotations

import pytest

from cinechat.db.vectors import decode_embedding, encode_embedding, vec_json_column


def test_empty_embedding_encodes_to_null():
    assert encode_embedding([]) is None
    assert encode_embedding(None) is None


def test_encode_produces_float32_blob():
    assert len(encode_embedding([0.1, 0.2, 0.3])) == 3 * 4


def test_decode_null_is_empty():
    assert decode_embedding(None) == []
    assert decode_embedding("") == []


def test_decode_json_array():
    assert decode_embedding("[0.5,-1.0]") == [0.5, -1.0]


def test_blob_round_trips_through_vec_to_json(tmp_db):
    blob = encode_embedding([0.25, -0.5, 1.0])
    with tmp_db.transaction() as conn:
        raw = conn.execute("SELECT vec_to_json(?)", (blob,)).fetchone()[0]
    assert decode_embedding(raw) == pytest.approx([0.25, -0.5, 1.0])


def test_vec_json_column_handles_null(tmp_db):
    with tmp_db.transaction() as conn:
        conn.execute("CREATE TABLE v (e BLOB)")
        conn.execute("INSERT INTO v VALUES (NULL)")
        row = conn.execute(f"SELECT {vec_json_column('e')} FROM v").fetchone()
    assert row["e"] is None
