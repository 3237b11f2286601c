"""Question-answering orchestrator.

Flow for one question:
  validate → exact fingerprint lookup → embed → RetrievalEngine.decide →
  reuse a cached answer, or generate one (grounded on chunks or open-domain),
  screen it, and upsert it under the question's fingerprint.

Nothing is written when generation fails or times out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cinechat.config import LlmCfg
from cinechat.db.fingerprints import FingerprintStore, fingerprint
from cinechat.db.models import ChatRecord
from cinechat.rag import llm_client
from cinechat.rag.assembler import REFUSAL, build_context, build_messages, screen_response
from cinechat.rag.credentials import CredentialRotator, call_with_rotation
from cinechat.rag.embedder import Embedder
from cinechat.rag.retriever import Decision, DecisionKind, RetrievalEngine
from cinechat.validation import validate_question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    question: str
    answer: str
    cached: bool


class QuestionAnswerer:
    """Answer questions, reusing cached answers whenever possible."""

    def __init__(
        self,
        engine: RetrievalEngine,
        embedder: Embedder,
        fingerprints: FingerprintStore,
        rotator: CredentialRotator,
        llm: LlmCfg,
    ) -> None:
        self._engine = engine
        self._embedder = embedder
        self._fingerprints = fingerprints
        self._rotator = rotator
        self._llm = llm

    def answer(self, question: str) -> Answer:
        """Return an answer for *question*.

        Raises:
            ValidationError: If the question is rejected by validation.
            ConfigError: If no credentials are configured.
            UpstreamError: If embedding or generation fails; nothing is stored.
            StorageError: If the generated answer cannot be persisted.
        """
        sanitized = validate_question(question)

        exact = self._engine.exact_match(sanitized)
        if exact is not None:
            return Answer(question=sanitized, answer=exact.answer or "", cached=True)

        embedding = self._embedder.embed(sanitized)
        decision = self._engine.decide(sanitized, embedding)
        if decision.cached:
            return Answer(question=sanitized, answer=decision.answer or "", cached=True)

        text = self._generate(sanitized, decision)
        if text == REFUSAL:
            return Answer(question=sanitized, answer=text, cached=False)

        self._fingerprints.upsert(
            ChatRecord(
                id=fingerprint(sanitized),
                question=sanitized,
                answer=text,
                embedding_question=embedding,
            )
        )
        return Answer(question=sanitized, answer=text, cached=False)

    def _generate(self, question: str, decision: Decision) -> str:
        if decision.kind is DecisionKind.GROUNDED:
            context = build_context([s.candidate.payload.content for s in decision.chunks])
            messages = build_messages(question, context)
            logger.info(
                "Answering grounded on %d chunk(s), best score %.3f",
                len(decision.chunks),
                decision.best_score or 0.0,
            )
        else:
            messages = build_messages(question)
            logger.info("Answering with open-domain fallback (no relevant chunks)")

        text = call_with_rotation(
            self._rotator,
            lambda api_key: llm_client.complete(
                self._llm.generation_model,
                messages,
                api_key=api_key,
                timeout=self._llm.timeout_seconds,
                max_tokens=self._llm.max_output_tokens,
                temperature=self._llm.temperature,
                num_retries=self._llm.num_retries,
            ),
            max_attempts=self._llm.max_rotation_attempts,
        )
        return screen_response(text)
