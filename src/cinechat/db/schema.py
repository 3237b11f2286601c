"""Database schema initialization."""

from __future__ import annotations

from cinechat.db.connection import Database
from cinechat.db.migrations import MIGRATIONS, run_migrations
from cinechat.db.repository import storage_errors

CURRENT_VERSION = MIGRATIONS[-1][0]


def initialize(db: Database) -> None:
    """Initialize the database schema via the migration runner (idempotent).

    Raises:
        StorageError: If the database cannot be opened or migrated.
    """
    with storage_errors("initialize database"), db.transaction() as conn:
        run_migrations(conn)
