"""Cross-session context aggregation.

Collects a user's analysed solo sessions and, when the user is in a
relationship, the couple's analysed sessions, then renders them newest
first into one delimited block for the coaching system prompt.

Reads never fail the request. If a fetch breaks, the failure is logged and
aggregation continues with whatever did load: a thinner context is still
useful for a coaching conversation, a hard error is not.
"""

from __future__ import annotations

import asyncio
import logging
import zoneinfo
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from typing import Any

from src.config import settings
from src.errors import InvalidRequest, UpstreamDegraded
from src.memory.models import SessionRecord
from src.memory.store import MemoryStore

logger = logging.getLogger(__name__)

CONTEXT_HEADER = (
    "=== KONTEXT AUS FRÜHEREN GESPRÄCHEN ===\n"
    "(Neueste zuerst - bei Widersprüchen gilt die neuere Information)"
)
CONTEXT_FOOTER = "=== ENDE KONTEXT ==="
BLOCK_SEPARATOR = "\n\n---\n\n"


@dataclass
class ContextResult:
    """Outcome of :func:`build_context`.

    ``loaded_count`` is None when nothing was found; the response then
    omits the key entirely.
    """

    context_text: str
    session_count: int
    loaded_count: int | None = None
    degraded: list[UpstreamDegraded] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "context": self.context_text,
            "sessionCount": self.session_count,
        }
        if self.loaded_count is not None:
            body["loadedCount"] = self.loaded_count
        return body


def merge_sessions(
    solo: Iterable[SessionRecord], couple: Iterable[SessionRecord]
) -> list[SessionRecord]:
    """Deduplicate by id and order newest first.

    The first occurrence of an id wins, and solo records come before couple
    records. Sorting is stable, so records with equal timestamps keep their
    relative order.
    """
    seen: set[str] = set()
    unique: list[SessionRecord] = []
    for record in (*solo, *couple):
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return sorted(unique, key=lambda r: r.created_at, reverse=True)


def render_session(record: SessionRecord, tz: zoneinfo.ZoneInfo | None = None) -> str:
    """Render one session as ``[dd.mm.yyyy - Label]``, analysis, themes line."""
    tz = tz or zoneinfo.ZoneInfo(settings.context_timezone)
    date = record.created_at.astimezone(tz).strftime("%d.%m.%Y")
    label = "Couple Session" if record.is_couple else "Solo Session"
    lines = [f"[{date} - {label}]", record.analysis or ""]
    if record.themes:
        lines.append(f"Themen: {', '.join(record.themes)}")
    return "\n".join(lines)


def wrap_context(blocks: list[str]) -> str:
    return f"{CONTEXT_HEADER}\n\n{BLOCK_SEPARATOR.join(blocks)}\n\n{CONTEXT_FOOTER}"


async def _load(
    label: str, fetch: Awaitable[list[SessionRecord]]
) -> tuple[list[SessionRecord], UpstreamDegraded | None]:
    try:
        return await fetch, None
    except Exception as exc:
        logger.exception("Error loading %s sessions", label)
        return [], UpstreamDegraded(f"{label} sessions unavailable: {exc}")


async def build_context(
    user_id: str,
    couple_id: str | None = None,
    store: MemoryStore | None = None,
    max_sessions: int | None = None,
) -> ContextResult:
    """Aggregate a user's (and their couple's) session analyses into prompt context.

    Args:
        user_id: The user whose history to load. Required.
        couple_id: When given, the couple's shared sessions are included too.
        store: Store override (defaults to the shared instance).
        max_sessions: Cap on rendered blocks (defaults to
            ``settings.context_max_sessions``).

    Returns:
        ContextResult with the wrapped text, the number of eligible sessions
        found and the number actually rendered.

    Raises:
        InvalidRequest: If *user_id* is empty.
    """
    if not user_id:
        raise InvalidRequest("User ID required")

    store = store or MemoryStore.get()
    limit = max_sessions if max_sessions is not None else settings.context_max_sessions

    loads = [_load("solo", store.list_user_sessions(user_id))]
    if couple_id:
        loads.append(_load("couple", store.list_couple_sessions(couple_id)))
    results = await asyncio.gather(*loads)

    solo, solo_error = results[0]
    couple, couple_error = results[1] if couple_id else ([], None)
    degraded = [e for e in (solo_error, couple_error) if e is not None]

    sessions = merge_sessions(solo, couple)
    if not sessions:
        return ContextResult(context_text="", session_count=0, degraded=degraded)

    tz = zoneinfo.ZoneInfo(settings.context_timezone)
    blocks = [render_session(s, tz) for s in sessions[:limit]]

    logger.debug(
        "Built context for user=%s: %d sessions found, %d loaded",
        user_id,
        len(sessions),
        len(blocks),
    )
    return ContextResult(
        context_text=wrap_context(blocks),
        session_count=len(sessions),
        loaded_count=len(blocks),
        degraded=degraded,
    )
