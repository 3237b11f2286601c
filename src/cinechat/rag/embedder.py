"""Embedding generation with credential rotation and an in-process memo."""

from __future__ import annotations

import hashlib
import logging

from cinechat.cache import TTLCache
from cinechat.config import LlmCfg
from cinechat.rag import llm_client
from cinechat.rag.credentials import CredentialRotator, call_with_rotation

logger = logging.getLogger(__name__)


class Embedder:
    """Turn text into vectors through the configured embedding model.

    Identical texts are embedded once per ``band`` lifetime: results are
    memoised in *cache* under a key derived from the model and the text.

    Args:
        rotator: Credential pool; each upstream call takes the next credential.
        cache: Shared TTL cache.
        llm: Model, timeout and retry settings.
        band: TTL band for memoised vectors.
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        cache: TTLCache,
        llm: LlmCfg,
        band: str = "12h",
    ) -> None:
        self._rotator = rotator
        self._cache = cache
        self._llm = llm
        self._band = band

    @property
    def model(self) -> str:
        return self._llm.embedding_model

    def cache_key(self, text: str) -> str:
        digest = hashlib.sha256(f"{self.model}|{text}".encode("utf-8")).hexdigest()
        return f"embedding:{digest}"

    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*, from the memo when possible.

        Raises:
            ConfigError: If no credentials are configured.
            UpstreamError: If the embedding service fails.
        """
        vector = self._cache.get_or_set(
            self.cache_key(text), self._band, lambda: self._embed_upstream(text)
        )
        return list(vector)

    def _embed_upstream(self, text: str) -> list[float]:
        logger.debug("Embedding %d characters with %s", len(text), self.model)
        return call_with_rotation(
            self._rotator,
            lambda api_key: llm_client.embed(
                self.model,
                text,
                api_key=api_key,
                timeout=self._llm.timeout_seconds,
                num_retries=self._llm.num_retries,
            ),
            max_attempts=self._llm.max_rotation_attempts,
        )
