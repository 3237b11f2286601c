"""Tests for the memoising embedder."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import litellm
import pytest

from cinechat.cache import TTLCache
from cinechat.config import LlmCfg, MissingCredentialsError
from cinechat.errors import UpstreamRateLimited, UpstreamUnavailable
from cinechat.rag.credentials import CredentialRotator
from cinechat.rag.embedder import Embedder


def _embedding_response(vector):
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


def _embedder(cache, keys="k1,k2", model="gemini/text-embedding-004"):
    return Embedder(CredentialRotator(keys), cache, LlmCfg(embedding_model=model), band="12h")


def test_embed_returns_vector(cache):
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([0.1, 0.2]),
    ):
        assert _embedder(cache).embed("popcorn") == [0.1, 0.2]


def test_identical_text_embedded_once(cache):
    embedder = _embedder(cache)
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([0.1, 0.2]),
    ) as mock_embedding:
        embedder.embed("popcorn")
        embedder.embed("popcorn")
    assert mock_embedding.call_count == 1


def test_memo_expires_with_band(cache, clock):
    embedder = _embedder(cache)
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([0.1, 0.2]),
    ) as mock_embedding:
        embedder.embed("popcorn")
        clock.advance(12 * 3600)
        embedder.embed("popcorn")
    assert mock_embedding.call_count == 2


def test_returned_vector_is_a_copy(cache):
    embedder = _embedder(cache)
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([0.1, 0.2]),
    ):
        first = embedder.embed("popcorn")
        first.append(9.9)
        assert embedder.embed("popcorn") == [0.1, 0.2]


def test_cache_key_depends_on_model(cache):
    a = _embedder(cache, model="gemini/text-embedding-004")
    b = _embedder(cache, model="openai/text-embedding-3-small")
    assert a.cache_key("popcorn") != b.cache_key("popcorn")
    assert a.cache_key("popcorn").startswith("embedding:")


def test_rotates_credentials_across_calls(cache):
    embedder = _embedder(cache, keys="k1,k2")
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([0.3]),
    ) as mock_embedding:
        embedder.embed("first text")
        embedder.embed("second text")
    keys = [c.kwargs["api_key"] for c in mock_embedding.call_args_list]
    assert keys == ["k1", "k2"]


def test_rate_limited_credential_is_skipped(cache):
    responses = [
        litellm.RateLimitError(message="quota", llm_provider="gemini", model="gemini/x"),
        _embedding_response([0.5]),
    ]
    with patch(
        "cinechat.rag.llm_client.litellm.embedding", side_effect=responses
    ) as mock_embedding:
        assert _embedder(cache).embed("popcorn") == [0.5]
    assert [c.kwargs["api_key"] for c in mock_embedding.call_args_list] == ["k1", "k2"]


def test_all_credentials_rate_limited(cache):
    def always_limited(**kwargs):
        raise litellm.RateLimitError(message="quota", llm_provider="gemini", model="gemini/x")

    with patch("cinechat.rag.llm_client.litellm.embedding", side_effect=always_limited):
        with pytest.raises(UpstreamRateLimited):
            _embedder(cache).embed("popcorn")
    assert len(cache) == 0


def test_failure_is_not_memoised(cache):
    embedder = _embedder(cache)
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([]),
    ):
        with pytest.raises(UpstreamUnavailable):
            embedder.embed("popcorn")
    assert len(cache) == 0


def test_no_credentials(cache):
    with pytest.raises(MissingCredentialsError):
        _embedder(cache, keys="").embed("popcorn")
