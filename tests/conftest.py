"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from src.memory.models import SessionRecord, SessionType
from src.memory.store import MemoryStore

BASE_TIME = datetime(2025, 3, 1, 10, 0, tzinfo=UTC)


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def store(tmp_path: Path, _no_turso):
    """A MemoryStore backed by a temp database, installed as the shared instance."""
    MemoryStore._reset()
    s = MemoryStore(db_path=tmp_path / "test.db")
    MemoryStore._instance = s
    yield s
    MemoryStore._reset()


def _make_session(
    session_id: str,
    *,
    days_ago: int = 0,
    user_id: str | None = "user-a",
    couple_id: str | None = None,
    type: SessionType = SessionType.SOLO,
    analysis: str | None = "Analysis",
    themes: list[str] | None = None,
) -> SessionRecord:
    """Build a SessionRecord created *days_ago* days before BASE_TIME."""
    return SessionRecord(
        id=session_id,
        user_id=user_id,
        couple_id=couple_id,
        type=type,
        analysis=analysis,
        themes=themes or [],
        created_at=BASE_TIME - timedelta(days=days_ago),
    )


@pytest.fixture
def make_session():
    """Factory for SessionRecords relative to BASE_TIME."""
    return _make_session
