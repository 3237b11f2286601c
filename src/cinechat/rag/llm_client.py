"""LiteLLM client wrapper for answer generation and embeddings.

All upstream calls route through this module. Each call takes an explicit
``api_key`` (chosen by the credential rotator) and a ``timeout``; LiteLLM's
exceptions are translated into the cinechat upstream error taxonomy:

  litellm.Timeout        → UpstreamTimeout
  litellm.RateLimitError → UpstreamRateLimited
  anything else          → UpstreamUnavailable
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import litellm

from cinechat.errors import UpstreamRateLimited, UpstreamTimeout, UpstreamUnavailable

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


@contextmanager
def _upstream_errors(action: str, model: str) -> Iterator[None]:
    try:
        yield
    except litellm.Timeout as exc:
        logger.warning("%s timed out (model=%s)", action, model)
        raise UpstreamTimeout(str(exc), action=action) from exc
    except litellm.RateLimitError as exc:
        logger.info("%s rate limited (model=%s)", action, model)
        raise UpstreamRateLimited(str(exc), action=action) from exc
    except Exception as exc:
        logger.error("%s failed (model=%s): %s", action, model, exc)
        raise UpstreamUnavailable(str(exc), action=action) from exc


def complete(
    model: str,
    messages: list[dict],
    *,
    api_key: str | None = None,
    timeout: float = 30.0,
    max_tokens: int = 1000,
    temperature: float = 0.7,
    num_retries: int = 1,
) -> str:
    """Call litellm.completion() and return the first choice's text.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list.
        api_key: Credential for this call; None lets LiteLLM read the provider env var.
        timeout: Seconds before the call is abandoned.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature.
        num_retries: LiteLLM retries on transient errors with the same credential.

    Raises:
        UpstreamTimeout, UpstreamRateLimited, UpstreamUnavailable: See module docstring.
            An empty completion is reported as UpstreamUnavailable.
    """
    action = "generate answer"
    with _upstream_errors(action, model):
        response = litellm.completion(
            model=model,
            messages=messages,
            api_key=api_key,
            timeout=timeout,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
    content = (response.choices[0].message.content or "").strip()
    if not content:
        raise UpstreamUnavailable("generation returned no content", action=action)
    return content


def embed(
    model: str,
    text: str,
    *,
    api_key: str | None = None,
    timeout: float = 30.0,
    num_retries: int = 1,
) -> list[float]:
    """Call litellm.embedding() and return the vector for *text*.

    Raises:
        UpstreamTimeout, UpstreamRateLimited, UpstreamUnavailable: See module docstring.
            An empty vector is reported as UpstreamUnavailable.
    """
    action = "embed text"
    with _upstream_errors(action, model):
        response = litellm.embedding(
            model=model,
            input=[text],
            api_key=api_key,
            timeout=timeout,
            num_retries=num_retries,
        )
    embedding = [float(x) for x in response.data[0]["embedding"]]
    if not embedding:
        raise UpstreamUnavailable("embedding service returned an empty vector", action=action)
    return embedding
