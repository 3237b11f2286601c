"""Error taxonomy shared by every cinechat layer.

Each error carries the failing *action* (e.g. "upsert chat record") so the
boundary layer can map it to a transport status and an actionable message.
Wrapped causes are chained with ``raise ... from exc``.
"""

from __future__ import annotations


class CinechatError(Exception):
    """Base class for all domain errors raised by cinechat."""

    def __init__(self, message: str, action: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.action = action

    def __str__(self) -> str:
        if self.action:
            return f"{self.action}: {self.message}"
        return self.message


class ValidationError(CinechatError):
    """Input has the wrong shape, size or type. Never retried."""


class NotFoundError(CinechatError):
    """A requested document or chat record does not exist."""


class StorageError(CinechatError):
    """A persistence operation failed; the original exception is ``__cause__``."""


class UpstreamError(CinechatError):
    """The embedding or generation service failed."""


class UpstreamTimeout(UpstreamError):
    """The upstream call exceeded its timeout."""


class UpstreamRateLimited(UpstreamError):
    """The upstream rejected the credential with a rate limit."""


class UpstreamUnavailable(UpstreamError):
    """Any other upstream failure (5xx, connection error, empty result)."""
