"""Round-robin API credential rotation.

The pool is process-lifetime only. ``configure()`` replaces the pool and
resets the cursor, which is the only way rotation fairness is ever reset.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, TypeVar

from cinechat.config import CREDENTIALS_ENV, MissingCredentialsError
from cinechat.errors import UpstreamRateLimited

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CredentialRotator:
    """Thread-safe round-robin selector over a pool of opaque credentials.

    Every credential is selected with equal long-run frequency; latency and
    failures are not taken into account.
    """

    def __init__(self, raw: str | None = None, delimiter: str = ",") -> None:
        self._lock = threading.Lock()
        self._pool: list[str] = []
        self._cursor = 0
        if raw:
            self.configure(raw, delimiter)

    def configure(self, raw: str, delimiter: str = ",") -> None:
        """Replace the pool with the non-empty trimmed tokens of *raw*."""
        tokens = [t.strip() for t in raw.split(delimiter)]
        pool = [t for t in tokens if t]
        with self._lock:
            self._pool = pool
            self._cursor = 0
        logger.debug("Credential pool configured with %d credential(s)", len(pool))

    def next(self) -> str | None:
        """Return the next credential, or None when the pool is empty."""
        with self._lock:
            if not self._pool:
                return None
            credential = self._pool[self._cursor % len(self._pool)]
            self._cursor += 1
            return credential

    def size(self) -> int:
        with self._lock:
            return len(self._pool)

    def is_empty(self) -> bool:
        return self.size() == 0

    def snapshot(self) -> list[str]:
        """Return a copy of the pool; mutating it never affects the rotator."""
        with self._lock:
            return list(self._pool)


def call_with_rotation(
    rotator: CredentialRotator,
    operation: Callable[[str], T],
    max_attempts: int = 3,
) -> T:
    """Call *operation* with successive credentials until it succeeds.

    Only ``UpstreamRateLimited`` moves on to the next credential; any other
    error propagates immediately. At most ``min(max_attempts, pool size)``
    attempts are made.

    Raises:
        MissingCredentialsError: If the pool is empty.
        UpstreamRateLimited: If every attempt was rate limited.
    """
    attempts = max(1, min(max_attempts, rotator.size()))
    last_exc: UpstreamRateLimited | None = None
    for attempt in range(1, attempts + 1):
        credential = rotator.next()
        if credential is None:
            raise MissingCredentialsError(
                f"No API credentials configured. Set {CREDENTIALS_ENV} to a "
                "comma-separated list of keys."
            )
        try:
            return operation(credential)
        except UpstreamRateLimited as exc:
            last_exc = exc
            logger.warning("Rate limited on attempt %d/%d, rotating credential", attempt, attempts)
    assert last_exc is not None
    raise last_exc
