"""Scoped erasure of personal and shared memory.

``personal`` resets the user's own memory and adaptive coaching profile.
``shared`` resets the couple's memory, which the partner sees immediately
since both partners own it. ``all`` does both and revokes memory consent.
Session history is never touched.

Each write is attempted independently and nothing is rolled back. If any
write fails the whole call fails with :class:`UpstreamFailure`, even when
other writes already went through.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from src.errors import InvalidRequest, UpstreamFailure
from src.memory.models import CoachingProfile, PersonalContext, SharedContext
from src.memory.store import MemoryStore

logger = logging.getLogger(__name__)


class EraseScope(StrEnum):
    PERSONAL = "personal"
    SHARED = "shared"
    ALL = "all"

    @classmethod
    def parse(cls, value: Any) -> EraseScope:
        try:
            return cls(value)
        except (ValueError, TypeError):
            raise InvalidRequest("Invalid deleteType") from None


_DELETED_LABELS = {
    EraseScope.PERSONAL: "personal_context",
    EraseScope.SHARED: "shared_context",
    EraseScope.ALL: "all",
}


@dataclass
class EraseResult:
    scope: EraseScope
    consent_revoked: bool = False
    success: bool = True

    @property
    def deleted(self) -> str:
        return _DELETED_LABELS[self.scope]

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "deleted": self.deleted}
        if self.consent_revoked:
            body["consentRevoked"] = True
        return body


async def _resolve_couple(store: MemoryStore, user_id: str) -> str | None:
    try:
        return await store.get_couple_id(user_id)
    except Exception:
        logger.warning(
            "Couple lookup failed for user=%s, continuing without couple",
            user_id,
            exc_info=True,
        )
        return None


async def erase_memory(
    user_id: str, scope: str | EraseScope, store: MemoryStore | None = None
) -> EraseResult:
    """Reset the memory structures named by *scope* for *user_id*.

    Raises:
        InvalidRequest: Missing *user_id* or unknown *scope*.
        UpstreamFailure: A store write failed. Carries the store's message.
    """
    if not user_id:
        raise InvalidRequest("userId required")
    scope = EraseScope.parse(scope)
    store = store or MemoryStore.get()

    couple_id = await _resolve_couple(store, user_id)

    writes: list[tuple[str, Callable[..., Awaitable[int]], tuple]] = []
    if scope in (EraseScope.PERSONAL, EraseScope.ALL):
        writes.append(
            (
                "personal_context",
                store.set_personal_context,
                (user_id, PersonalContext.empty(), CoachingProfile.empty()),
            )
        )
    if scope in (EraseScope.SHARED, EraseScope.ALL) and couple_id:
        writes.append(
            ("shared_context", store.set_shared_context, (couple_id, SharedContext.empty()))
        )
    if scope == EraseScope.ALL:
        writes.append(("memory_consent", store.revoke_consent, (user_id,)))

    errors: list[Exception] = []
    for name, write, args in writes:
        try:
            await write(*args)
        except Exception as exc:
            logger.exception("Memory erase write failed: user=%s target=%s", user_id, name)
            errors.append(exc)

    if errors:
        raise UpstreamFailure(str(errors[0])) from errors[0]

    logger.info("Erased memory: user=%s scope=%s couple=%s", user_id, scope, couple_id or "-")
    return EraseResult(scope=scope, consent_revoked=scope == EraseScope.ALL)
