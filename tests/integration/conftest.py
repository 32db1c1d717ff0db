"""Fixtures for integration tests against a real SQLite file."""

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Initialize a fresh SQLite database in a temporary directory."""
    db_path = str(tmp_path / "maqsadm-test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", db_path)

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()
