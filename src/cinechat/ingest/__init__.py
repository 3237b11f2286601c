"""Cinechat ingest pipeline: text extraction, chunking and document management."""

from cinechat.ingest.chunking import (
    BaseChunker,
    ChunkConfig,
    FixedWindowChunker,
    SeparatorChunker,
    TextChunk,
    split_into_chunks,
)
from cinechat.ingest.extract import clean_markdown, extract_text

__all__ = [
    "BaseChunker",
    "ChunkConfig",
    "FixedWindowChunker",
    "SeparatorChunker",
    "TextChunk",
    "clean_markdown",
    "extract_text",
    "split_into_chunks",
]
