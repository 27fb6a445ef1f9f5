"""MemoryStore: profiles, couples, and session history via libsql.

Reads and writes the three tables the memory endpoints touch:

- ``profiles``: one row per user with ``couple_id``, the memory consent
  flag, the ``personal_context`` and ``coaching_profile`` JSON documents.
- ``couples``: one row per couple with the ``shared_context`` JSON document.
- ``sessions``: analysed conversation history, written by the analysis
  pipeline and only read here.

Driver errors propagate to the caller. Deciding whether a failure is
tolerable is the job of the aggregator and the eraser, not the store.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.db import Database
from src.memory.models import (
    CoachingProfile,
    PersonalContext,
    SessionRecord,
    SessionType,
    SharedContext,
)

if TYPE_CHECKING:
    from pathlib import Path

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id                TEXT PRIMARY KEY,
        couple_id         TEXT,
        memory_consent    INTEGER NOT NULL DEFAULT 0,
        memory_consent_at TEXT,
        personal_context  TEXT NOT NULL,
        coaching_profile  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS couples (
        id             TEXT PRIMARY KEY,
        shared_context TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id         TEXT PRIMARY KEY,
        user_id    TEXT,
        couple_id  TEXT,
        type       TEXT NOT NULL DEFAULT 'solo',
        analysis   TEXT,
        themes     TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions (user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_couple ON sessions (couple_id, type, created_at)",
]

_SESSION_COLUMNS = "id, user_id, couple_id, type, analysis, themes, created_at"


class MemoryStore:
    """Persists memory documents and session history in SQLite / Turso.

    Singleton accessed via ``MemoryStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: MemoryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db = Database(local_path=db_path, schema=SCHEMA)

    @classmethod
    def get(cls) -> MemoryStore:
        """Return the shared MemoryStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Session history (read) -----------------------------------------------

    async def list_user_sessions(self, user_id: str) -> list[SessionRecord]:
        """Analysed sessions owned by *user_id*, newest first."""
        rows = await self._db.fetchall(
            f"""
            SELECT {_SESSION_COLUMNS} FROM sessions
            WHERE user_id = ? AND analysis IS NOT NULL
            ORDER BY created_at DESC
            """,
            (user_id,),
        )
        return [SessionRecord.from_row(row) for row in rows]

    async def list_couple_sessions(self, couple_id: str) -> list[SessionRecord]:
        """Analysed couple-type sessions of *couple_id*, newest first."""
        rows = await self._db.fetchall(
            f"""
            SELECT {_SESSION_COLUMNS} FROM sessions
            WHERE couple_id = ? AND type = ? AND analysis IS NOT NULL
            ORDER BY created_at DESC
            """,
            (couple_id, SessionType.COUPLE.value),
        )
        return [SessionRecord.from_row(row) for row in rows]

    async def add_session(self, session: SessionRecord) -> SessionRecord:
        """Insert a session record. Used by the analysis pipeline and fixtures."""
        await self._db.write(
            f"INSERT INTO sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                session.id,
                session.user_id,
                session.couple_id,
                session.type.value,
                session.analysis,
                json.dumps(session.themes),
                session.created_at.isoformat(),
            ),
        )
        return session

    # -- Profiles and couples --------------------------------------------------

    async def upsert_profile(
        self,
        user_id: str,
        couple_id: str | None = None,
        memory_consent: bool = False,
        personal_context: PersonalContext | None = None,
        coaching_profile: CoachingProfile | None = None,
    ) -> None:
        """Create or replace a profile row."""
        context = personal_context or PersonalContext.empty()
        coaching = coaching_profile or CoachingProfile.empty()
        consent_at = datetime.now(UTC).isoformat() if memory_consent else None
        await self._db.write(
            """
            INSERT OR REPLACE INTO profiles
                (id, couple_id, memory_consent, memory_consent_at,
                 personal_context, coaching_profile)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                couple_id,
                int(memory_consent),
                consent_at,
                context.model_dump_json(),
                coaching.model_dump_json(),
            ),
        )

    async def upsert_couple(
        self, couple_id: str, shared_context: SharedContext | None = None
    ) -> None:
        """Create or replace a couple row."""
        context = shared_context or SharedContext.empty()
        await self._db.write(
            "INSERT OR REPLACE INTO couples (id, shared_context) VALUES (?, ?)",
            (couple_id, context.model_dump_json()),
        )

    async def get_couple_id(self, user_id: str) -> str | None:
        """Return the couple the user belongs to, or None."""
        row = await self._db.fetchone("SELECT couple_id FROM profiles WHERE id = ?", (user_id,))
        return row[0] if row else None

    async def get_memory_consent(self, user_id: str) -> bool | None:
        """Return the consent flag, or None if the profile does not exist."""
        row = await self._db.fetchone(
            "SELECT memory_consent FROM profiles WHERE id = ?", (user_id,)
        )
        return bool(row[0]) if row else None

    async def get_personal_context(self, user_id: str) -> PersonalContext | None:
        row = await self._db.fetchone(
            "SELECT personal_context FROM profiles WHERE id = ?", (user_id,)
        )
        return PersonalContext.model_validate_json(row[0]) if row else None

    async def get_coaching_profile(self, user_id: str) -> CoachingProfile | None:
        row = await self._db.fetchone(
            "SELECT coaching_profile FROM profiles WHERE id = ?", (user_id,)
        )
        return CoachingProfile.model_validate_json(row[0]) if row else None

    async def get_shared_context(self, couple_id: str) -> SharedContext | None:
        row = await self._db.fetchone(
            "SELECT shared_context FROM couples WHERE id = ?", (couple_id,)
        )
        return SharedContext.model_validate_json(row[0]) if row else None

    # -- Memory writes ---------------------------------------------------------

    async def set_personal_context(
        self,
        user_id: str,
        context: PersonalContext,
        coaching_profile: CoachingProfile | None = None,
    ) -> int:
        """Overwrite the user's personal context. Returns rows updated.

        When *coaching_profile* is given it is written in the same statement.
        """
        if coaching_profile is None:
            return await self._db.write(
                "UPDATE profiles SET personal_context = ? WHERE id = ?",
                (context.model_dump_json(), user_id),
            )
        return await self._db.write(
            "UPDATE profiles SET personal_context = ?, coaching_profile = ? WHERE id = ?",
            (context.model_dump_json(), coaching_profile.model_dump_json(), user_id),
        )

    async def set_shared_context(self, couple_id: str, context: SharedContext) -> int:
        """Overwrite the couple's shared context. Returns rows updated."""
        return await self._db.write(
            "UPDATE couples SET shared_context = ? WHERE id = ?",
            (context.model_dump_json(), couple_id),
        )

    async def revoke_consent(self, user_id: str) -> int:
        """Set the consent flag to false and clear its timestamp."""
        return await self._db.write(
            "UPDATE profiles SET memory_consent = 0, memory_consent_at = NULL WHERE id = ?",
            (user_id,),
        )
