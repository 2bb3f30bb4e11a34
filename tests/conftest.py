"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from src.core import db_client
from src.core.config import settings


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch) -> AsyncIterator[str]:
    """Point the real db_client at a throwaway SQLite file with the schema applied."""
    path = str(tmp_path / "taskpulse-test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", path)
    # asyncio locks bind to the loop that first waits on them; each test runs its own loop
    monkeypatch.setattr(db_client, "_transaction_lock", asyncio.Lock())
    await db_client.init_db()
    yield path
    await db_client.close_connection()


@pytest.fixture
def lookback_days(monkeypatch):
    """Override the pending lookback window for a test.

    Usage:
        lookback_days(7)
    """

    def _set(days: int) -> None:
        monkeypatch.setattr(settings, "pending_lookback_days", days)

    return _set
