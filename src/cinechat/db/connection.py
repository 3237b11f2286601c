"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec


class Database:
    """Shared SQLite database with sqlite-vec loaded.

    One connection is shared by every store and guarded by a re-entrant lock,
    so callers never synchronise externally. Use ``transaction()`` for every
    read or write; it commits on success and rolls back on error.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing),
                or ``":memory:"``.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        """Open the connection (once), load sqlite-vec, and return it."""
        with self._lock:
            if self._conn is None:
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.enable_load_extension(True)
                sqlite_vec.load(conn)
                conn.enable_load_extension(False)
                conn.execute("PRAGMA foreign_keys = ON")
                conn.execute("PRAGMA journal_mode = WAL")
                self._conn = conn
            return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection under the lock; commit on exit, roll back on error."""
        with self._lock:
            conn = self.connect()
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> Database:
        """Open the database (context manager support)."""
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        self.close()
