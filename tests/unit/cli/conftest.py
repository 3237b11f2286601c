"""Fixtures shared by the CLI tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path to a not-yet-created .cinechat.db in tmp_path."""
    return tmp_path / ".cinechat.db"


@pytest.fixture
def api_keys(monkeypatch):
    monkeypatch.setenv("CINECHAT_API_KEYS", "k1,k2")


@pytest.fixture
def wide_console(monkeypatch):
    """Render tables without wrapping so assertions can match whole cells."""
    for module in ("documents", "ingest", "ask"):
        monkeypatch.setattr(f"cinechat.cli.{module}.console", Console(width=200))


@pytest.fixture
def fake_embedding():
    """Patch litellm.embedding with a constant three-dimensional vector."""
    response = MagicMock()
    response.data = [{"embedding": [1.0, 0.0, 0.0]}]
    with patch("cinechat.rag.llm_client.litellm.embedding", return_value=response) as mock:
        yield mock
