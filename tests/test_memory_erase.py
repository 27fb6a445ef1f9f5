"""Tests for scoped memory erasure."""

from unittest.mock import AsyncMock

import asyncio

import pytest

from src.errors import InvalidRequest, UpstreamFailure
from src.memory.erase import EraseResult, EraseScope, erase_memory
from src.memory.models import CoachingProfile, PersonalContext, SharedContext


def _fake_store(couple_id: str | None = "couple-1") -> AsyncMock:
    store = AsyncMock()
    store.get_couple_id.return_value = couple_id
    store.set_personal_context.return_value = 1
    store.set_shared_context.return_value = 1
    store.revoke_consent.return_value = 1
    return store


def _filled_personal() -> PersonalContext:
    ctx = PersonalContext.empty()
    ctx.expressed.append("Wants more time together")
    ctx.next_solo.followup = "Ask about the weekend"
    return ctx


def _filled_coaching() -> CoachingProfile:
    return CoachingProfile(
        communication_style="reflective", sessions_analyzed=7, notes=["opens up late"]
    )


def _filled_shared() -> SharedContext:
    ctx = SharedContext.empty()
    ctx.strengths.append("humour")
    ctx.facts.together_since = "2019"
    return ctx


# -- Validation ---------------------------------------------------------------


class TestValidation:
    async def test_missing_user_id(self):
        store = _fake_store()
        with pytest.raises(InvalidRequest, match="userId required"):
            await erase_memory("", "personal", store=store)
        store.get_couple_id.assert_not_called()

    @pytest.mark.parametrize("scope", ["bogus", "", None, "statements", "ALL"])
    async def test_invalid_scope_performs_no_writes(self, scope):
        store = _fake_store()
        with pytest.raises(InvalidRequest, match="Invalid deleteType"):
            await erase_memory("user-a", scope, store=store)
        store.set_personal_context.assert_not_called()
        store.set_shared_context.assert_not_called()
        store.revoke_consent.assert_not_called()

    def test_scope_parse(self):
        assert EraseScope.parse("shared") is EraseScope.SHARED


# -- Scopes -------------------------------------------------------------------


class TestScopes:
    async def test_personal(self):
        store = _fake_store()
        result = await erase_memory("user-a", "personal", store=store)
        store.set_personal_context.assert_awaited_once_with(
            "user-a", PersonalContext.empty(), CoachingProfile.empty()
        )
        store.set_shared_context.assert_not_called()
        store.revoke_consent.assert_not_called()
        assert result.to_response() == {"success": True, "deleted": "personal_context"}

    async def test_shared(self):
        store = _fake_store()
        result = await erase_memory("user-a", EraseScope.SHARED, store=store)
        store.set_shared_context.assert_awaited_once_with("couple-1", SharedContext.empty())
        store.set_personal_context.assert_not_called()
        store.revoke_consent.assert_not_called()
        assert result.to_response() == {"success": True, "deleted": "shared_context"}

    async def test_shared_without_couple_is_noop(self):
        store = _fake_store(couple_id=None)
        result = await erase_memory("user-a", "shared", store=store)
        store.set_shared_context.assert_not_called()
        assert result.success is True
        assert result.deleted == "shared_context"

    async def test_all(self):
        store = _fake_store()
        result = await erase_memory("user-a", "all", store=store)
        store.set_personal_context.assert_awaited_once()
        store.set_shared_context.assert_awaited_once()
        store.revoke_consent.assert_awaited_once_with("user-a")
        assert result.to_response() == {
            "success": True,
            "deleted": "all",
            "consentRevoked": True,
        }

    async def test_all_without_couple(self):
        store = _fake_store(couple_id=None)
        result = await erase_memory("user-a", "all", store=store)
        store.set_shared_context.assert_not_called()
        store.revoke_consent.assert_awaited_once_with("user-a")
        assert result.consent_revoked is True

    async def test_couple_lookup_failure_treated_as_no_couple(self):
        store = _fake_store()
        store.get_couple_id.side_effect = RuntimeError("lookup failed")
        result = await erase_memory("user-a", "all", store=store)
        store.set_shared_context.assert_not_called()
        store.set_personal_context.assert_awaited_once()
        assert result.consent_revoked is True


# -- Write failures -----------------------------------------------------------


class TestWriteFailures:
    async def test_failure_surfaces_store_message(self):
        store = _fake_store()
        store.set_personal_context.side_effect = RuntimeError("permission denied for profiles")
        with pytest.raises(UpstreamFailure, match="permission denied for profiles"):
            await erase_memory("user-a", "personal", store=store)

    async def test_remaining_writes_still_attempted(self):
        store = _fake_store()
        store.set_personal_context.side_effect = RuntimeError("boom")
        with pytest.raises(UpstreamFailure):
            await erase_memory("user-a", "all", store=store)
        store.set_shared_context.assert_awaited_once()
        store.revoke_consent.assert_awaited_once()

    async def test_consent_failure_after_reset(self):
        store = _fake_store()
        store.revoke_consent.side_effect = RuntimeError("consent write failed")
        with pytest.raises(UpstreamFailure, match="consent write failed"):
            await erase_memory("user-a", "all", store=store)
        store.set_personal_context.assert_awaited_once()

    async def test_cancellation_stops_before_later_writes(self):
        store = _fake_store()
        store.set_personal_context.side_effect = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await erase_memory("user-a", "all", store=store)
        store.set_shared_context.assert_not_called()
        store.revoke_consent.assert_not_called()


# -- Against the real store ---------------------------------------------------


class TestWithStore:
    @pytest.fixture
    async def seeded(self, store):
        await store.upsert_couple("couple-1", _filled_shared())
        await store.upsert_profile(
            "user-a",
            "couple-1",
            memory_consent=True,
            personal_context=_filled_personal(),
            coaching_profile=_filled_coaching(),
        )
        await store.upsert_profile(
            "user-b", "couple-1", memory_consent=True, personal_context=_filled_personal()
        )
        await store.upsert_profile("single", None, memory_consent=True)
        return store

    async def test_personal_is_idempotent(self, seeded):
        for _ in range(2):
            result = await erase_memory("user-a", "personal")
            assert result.success is True
            assert await seeded.get_personal_context("user-a") == PersonalContext.empty()

    async def test_personal_leaves_shared_alone(self, seeded):
        await erase_memory("user-a", "personal")
        assert await seeded.get_shared_context("couple-1") == _filled_shared()
        assert await seeded.get_memory_consent("user-a") is True

    async def test_shared_leaves_personal_alone(self, seeded):
        await erase_memory("user-a", "shared")
        assert await seeded.get_personal_context("user-a") == _filled_personal()
        assert await seeded.get_shared_context("couple-1") == SharedContext.empty()
        assert await seeded.get_memory_consent("user-a") is True

    async def test_shared_reset_visible_to_partner(self, seeded):
        await erase_memory("user-a", "shared")
        partner_couple = await seeded.get_couple_id("user-b")
        assert await seeded.get_shared_context(partner_couple) == SharedContext.empty()
        assert await seeded.get_personal_context("user-b") == _filled_personal()

    async def test_all_revokes_consent(self, seeded):
        result = await erase_memory("user-a", "all")
        assert result == EraseResult(scope=EraseScope.ALL, consent_revoked=True)
        assert await seeded.get_memory_consent("user-a") is False
        assert await seeded.get_memory_consent("user-b") is True
        assert await seeded.get_personal_context("user-a") == PersonalContext.empty()
        assert await seeded.get_shared_context("couple-1") == SharedContext.empty()

    async def test_single_user_shared(self, seeded):
        result = await erase_memory("single", "shared")
        assert result.success is True
        assert await seeded.get_shared_context("couple-1") == _filled_shared()

    async def test_personal_resets_coaching_profile(self, seeded):
        await erase_memory("user-a", "personal")
        assert await seeded.get_coaching_profile("user-a") == CoachingProfile.empty()

    async def test_shared_keeps_coaching_profile(self, seeded):
        await erase_memory("user-a", "shared")
        assert await seeded.get_coaching_profile("user-a") == _filled_coaching()

    async def test_all_resets_coaching_profile(self, seeded):
        await erase_memory("user-a", "all")
        profile = await seeded.get_coaching_profile("user-a")
        assert profile == CoachingProfile.empty()
        assert profile.trust_level == "building"
