"""Domain models for the cinechat database layer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(enum.Enum):
    """Ingestion state of a Document. COMPLETED and FAILED are terminal."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING

    def can_transition_to(self, target: DocumentStatus) -> bool:
        return not self.is_terminal and target.is_terminal


@dataclass
class ChatRecord:
    id: str  # fingerprint of the normalised question
    question: str
    answer: str
    embedding_question: list[float] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Document:
    id: str
    title: str
    path: str
    type: str
    size_bytes: int = 0
    status: DocumentStatus = DocumentStatus.PROCESSING
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class DocumentChunk:
    id: str
    document_id: str
    chunk_index: int
    content: str
    embedding: list[float] = field(default_factory=list)
    start_pos: int = 0
    end_pos: int = 0
    token_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
