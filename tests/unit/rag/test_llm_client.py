"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import litellm
import pytest

from cinechat.errors import UpstreamRateLimited, UpstreamTimeout, UpstreamUnavailable
from cinechat.rag.llm_client import complete, embed

_MESSAGES = [{"role": "user", "content": "When does the last show start?"}]


def _completion_response(content):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def _embedding_response(vector):
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


def _timeout():
    return litellm.Timeout(message="request timed out", model="gemini/x", llm_provider="gemini")


def _rate_limited():
    return litellm.RateLimitError(message="quota exceeded", llm_provider="gemini", model="gemini/x")


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def test_complete_returns_stripped_content():
    with patch(
        "cinechat.rag.llm_client.litellm.completion",
        return_value=_completion_response("  The last show starts at 23:00.  "),
    ):
        assert complete("gemini/x", _MESSAGES, api_key="k1") == "The last show starts at 23:00."


def test_complete_passes_credential_and_limits():
    with patch(
        "cinechat.rag.llm_client.litellm.completion",
        return_value=_completion_response("ok"),
    ) as mock_completion:
        complete(
            "openai/gpt-4o-mini", _MESSAGES, api_key="k2", timeout=5.0,
            max_tokens=50, temperature=0.1, num_retries=0,
        )
    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["messages"] == _MESSAGES
    assert kwargs["api_key"] == "k2"
    assert kwargs["timeout"] == 5.0
    assert kwargs["max_tokens"] == 50
    assert kwargs["temperature"] == 0.1
    assert kwargs["num_retries"] == 0


@pytest.mark.parametrize("content", [None, "", "   "])
def test_complete_empty_content_is_unavailable(content):
    with patch(
        "cinechat.rag.llm_client.litellm.completion",
        return_value=_completion_response(content),
    ):
        with pytest.raises(UpstreamUnavailable, match="no content"):
            complete("gemini/x", _MESSAGES)


def test_complete_timeout_mapped():
    with patch("cinechat.rag.llm_client.litellm.completion", side_effect=_timeout()):
        with pytest.raises(UpstreamTimeout) as excinfo:
            complete("gemini/x", _MESSAGES)
    assert excinfo.value.action == "generate answer"
    assert isinstance(excinfo.value.__cause__, litellm.Timeout)


def test_complete_rate_limit_mapped():
    with patch("cinechat.rag.llm_client.litellm.completion", side_effect=_rate_limited()):
        with pytest.raises(UpstreamRateLimited):
            complete("gemini/x", _MESSAGES)


def test_complete_other_error_unavailable():
    with patch(
        "cinechat.rag.llm_client.litellm.completion",
        side_effect=ConnectionError("connection reset"),
    ):
        with pytest.raises(UpstreamUnavailable, match="connection reset"):
            complete("gemini/x", _MESSAGES)


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_float_vector():
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([1, 0.5, -0.25]),
    ) as mock_embedding:
        vector = embed("gemini/text-embedding-004", "popcorn", api_key="k1")
    assert vector == [1.0, 0.5, -0.25]
    kwargs = mock_embedding.call_args.kwargs
    assert kwargs["input"] == ["popcorn"]
    assert kwargs["api_key"] == "k1"


def test_embed_empty_vector_is_unavailable():
    with patch(
        "cinechat.rag.llm_client.litellm.embedding",
        return_value=_embedding_response([]),
    ):
        with pytest.raises(UpstreamUnavailable, match="empty vector"):
            embed("gemini/x", "popcorn")


def test_embed_timeout_mapped():
    with patch("cinechat.rag.llm_client.litellm.embedding", side_effect=_timeout()):
        with pytest.raises(UpstreamTimeout) as excinfo:
            embed("gemini/x", "popcorn")
    assert excinfo.value.action == "embed text"


def test_embed_rate_limit_mapped():
    with patch("cinechat.rag.llm_client.litellm.embedding", side_effect=_rate_limited()):
        with pytest.raises(UpstreamRateLimited):
            embed("gemini/x", "popcorn")
