"""Embedding (de)serialisation through sqlite-vec.

Embeddings are stored as compact float32 blobs. Reads go through the
``vec_to_json()`` SQL function so rows come back as JSON arrays.
"""

from __future__ import annotations

import json

import sqlite_vec


def encode_embedding(embedding: list[float] | None) -> bytes | None:
    """Serialise *embedding* to a float32 blob; None/empty becomes NULL."""
    if not embedding:
        return None
    return sqlite_vec.serialize_float32([float(x) for x in embedding])


def decode_embedding(raw: str | None) -> list[float]:
    """Parse the JSON text produced by ``vec_to_json()``; NULL becomes []."""
    if not raw:
        return []
    return [float(x) for x in json.loads(raw)]


def vec_json_column(column: str, alias: str | None = None) -> str:
    """SQL expression that reads *column* as JSON, tolerating NULL blobs."""
    alias = alias or column
    return (
        f"CASE WHEN {column} IS NULL THEN NULL ELSE vec_to_json({column}) END AS {alias}"
    )
