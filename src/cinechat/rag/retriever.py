"""Semantic retrieval: cosine ranking over cached answers and document chunks.

For a question the engine decides, in order:

  1. EXACT_HIT     the question's fingerprint already has an answer
  2. SEMANTIC_HIT  a recently answered question is similar enough
                   (score >= semantic_high_confidence_threshold)
  3. GROUNDED      some document chunks are relevant
                   (score >= semantic_relevance_threshold), best top_k kept
  4. OPEN_DOMAIN   nothing relevant; answer without context

Chunk candidates are memoised in the TTL cache and must be invalidated
whenever documents are ingested or deleted.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cinechat.cache import TTLCache
from cinechat.config import RetrievalCfg
from cinechat.db.fingerprints import FingerprintStore, fingerprint
from cinechat.db.models import utcnow
from cinechat.db.repository import DocumentRepository

logger = logging.getLogger(__name__)

CHUNK_CANDIDATES_KEY = "document_chunks"


@dataclass(frozen=True)
class Candidate:
    """Anything that can be ranked: a cached question or a document chunk."""

    id: str
    embedding: list[float]
    payload: Any = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float


class DecisionKind(enum.Enum):
    EXACT_HIT = "exact_hit"
    SEMANTIC_HIT = "semantic_hit"
    GROUNDED = "grounded"
    OPEN_DOMAIN = "open_domain"


@dataclass
class Decision:
    """Outcome of ``RetrievalEngine.decide``.

    Attributes:
        kind: Which branch was taken.
        answer: Reused answer for EXACT_HIT / SEMANTIC_HIT, else None.
        chunks: Relevant chunks (GROUNDED only), best first.
        best_score: Score of the winning cached question or best chunk.
    """

    kind: DecisionKind
    answer: str | None = None
    chunks: list[ScoredCandidate] = field(default_factory=list)
    best_score: float | None = None

    @property
    def cached(self) -> bool:
        return self.kind in (DecisionKind.EXACT_HIT, DecisionKind.SEMANTIC_HIT)


# ------------------------------------------------------------------
# Scoring
# ------------------------------------------------------------------


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between *a* and *b*, in [-1, 1].

    Returns 0.0 for empty vectors, zero-norm vectors, or mismatched lengths.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def rank(
    query_embedding: list[float],
    candidates: list[Candidate],
    top_k: int | None = None,
) -> list[ScoredCandidate]:
    """Score *candidates* against *query_embedding*, best first.

    Ties are broken by ``created_at``, newest first. ``top_k=None`` keeps all.
    """
    if top_k is not None and top_k <= 0:
        return []
    scored = [ScoredCandidate(c, cosine_similarity(query_embedding, c.embedding)) for c in candidates]
    # Two stable sorts: secondary key first.
    scored.sort(key=lambda s: s.candidate.created_at, reverse=True)
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored if top_k is None else scored[:top_k]


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class RetrievalEngine:
    """Decide how a question should be answered.

    Args:
        fingerprints: Store of previously answered questions.
        documents: Repository providing retrievable chunks.
        cache: Shared TTL cache used for chunk candidates.
        config: Thresholds and limits.
        chunk_band: TTL band for memoised chunk candidates.
    """

    def __init__(
        self,
        fingerprints: FingerprintStore,
        documents: DocumentRepository,
        cache: TTLCache,
        config: RetrievalCfg,
        chunk_band: str = "1m",
    ) -> None:
        self._fingerprints = fingerprints
        self._documents = documents
        self._cache = cache
        self._config = config
        self._chunk_band = chunk_band
        # Bumped on every invalidation; a load that straddles one is not cached.
        self._generation = 0
        self._generation_lock = threading.Lock()

    def exact_match(self, question: str) -> Decision | None:
        """Return an EXACT_HIT decision if *question* was answered before."""
        record = self._fingerprints.get_by_fingerprint(fingerprint(question))
        if record is None:
            return None
        logger.info("Exact cache hit for question fingerprint %s", record.id[:12])
        return Decision(kind=DecisionKind.EXACT_HIT, answer=record.answer, best_score=1.0)

    def decide(self, question: str, query_embedding: list[float]) -> Decision:
        exact = self.exact_match(question)
        if exact is not None:
            return exact

        semantic = self._best_cached_answer(query_embedding)
        if semantic is not None:
            return semantic

        relevant = [
            s
            for s in rank(query_embedding, self.chunk_candidates())
            if s.score >= self._config.semantic_relevance_threshold
        ][: self._config.top_k]
        if relevant:
            return Decision(
                kind=DecisionKind.GROUNDED, chunks=relevant, best_score=relevant[0].score
            )
        return Decision(kind=DecisionKind.OPEN_DOMAIN)

    def chunk_candidates(self) -> list[Candidate]:
        """Embedded chunks of COMPLETED documents, memoised in the TTL cache."""
        cached = self._cache.get(CHUNK_CANDIDATES_KEY)
        if cached is not None:
            return cached

        with self._generation_lock:
            generation = self._generation
        candidates = self._load_chunk_candidates()
        with self._generation_lock:
            if generation == self._generation:
                self._cache.put(CHUNK_CANDIDATES_KEY, candidates, self._chunk_band)
            else:
                logger.debug("Chunk candidates changed while loading; not caching them")
        return candidates

    def invalidate_chunk_cache(self) -> None:
        with self._generation_lock:
            self._generation += 1
            self._cache.delete(CHUNK_CANDIDATES_KEY)

    def _best_cached_answer(self, query_embedding: list[float]) -> Decision | None:
        records = self._fingerprints.get_recent_with_embedding(
            self._config.semantic_candidate_limit
        )
        candidates = [
            Candidate(id=r.id, embedding=r.embedding_question, payload=r, created_at=r.created_at)
            for r in records
        ]
        best = rank(query_embedding, candidates, top_k=1)
        if not best or best[0].score < self._config.semantic_high_confidence_threshold:
            return None
        record = best[0].candidate.payload
        logger.info(
            "Semantic cache hit (score=%.3f) for question fingerprint %s",
            best[0].score,
            record.id[:12],
        )
        return Decision(
            kind=DecisionKind.SEMANTIC_HIT, answer=record.answer, best_score=best[0].score
        )

    def _load_chunk_candidates(self) -> list[Candidate]:
        chunks = self._documents.list_retrievable_chunks()
        logger.debug("Loaded %d retrievable chunk(s)", len(chunks))
        return [
            Candidate(id=c.id, embedding=c.embedding, payload=c, created_at=c.created_at)
            for c in chunks
        ]
