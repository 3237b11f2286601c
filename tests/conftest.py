"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from cinechat.db.connection import Database
from cinechat.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".cinechat.db")
    initialize(db)
    yield db
    db.close()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep user config and CINECHAT_* variables out of every test."""
    for var in ("CINECHAT_API_KEYS", "CINECHAT_GENERATION_MODEL", "CINECHAT_EMBEDDING_MODEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("cinechat.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
