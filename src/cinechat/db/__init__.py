"""Cinechat database layer."""

from cinechat.db.connection import Database
from cinechat.db.fingerprints import FingerprintStore, fingerprint, normalize_question
from cinechat.db.migrations import MIGRATIONS, run_migrations
from cinechat.db.repository import DocumentRepository, storage_errors
from cinechat.db.schema import initialize

__all__ = [
    "Database",
    "DocumentRepository",
    "FingerprintStore",
    "fingerprint",
    "initialize",
    "normalize_question",
    "run_migrations",
    "storage_errors",
    "MIGRATIONS",
]
