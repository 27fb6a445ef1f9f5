"""Data models for session history and cross-session memory."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SessionType(StrEnum):
    SOLO = "solo"
    COUPLE = "couple"
    MESSAGE_ANALYSIS = "message_analysis"


class SessionRecord(BaseModel):
    """One completed conversation analysis.

    Only records with a non-null ``analysis`` are eligible for aggregation.
    Records are written by the analysis pipeline and never modified here.
    """

    id: str
    type: SessionType = SessionType.SOLO
    user_id: str | None = None
    couple_id: str | None = None
    analysis: str | None = None
    themes: list[str] = Field(default_factory=list)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Timestamps stored without an offset are UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_couple(self) -> bool:
        return self.type == SessionType.COUPLE

    @classmethod
    def from_row(cls, row: tuple) -> SessionRecord:
        """Build from a ``sessions`` row: id, user_id, couple_id, type, analysis, themes, created_at."""
        themes = json.loads(row[5] or "[]") or []
        return cls(
            id=row[0],
            user_id=row[1],
            couple_id=row[2],
            type=row[3],
            analysis=row[4],
            themes=themes,
            created_at=row[6],
        )


# -- Personal memory ---------------------------------------------------------


class CoachingStyle(BaseModel):
    responds_well: list[Any] = Field(default_factory=list)
    avoid: list[Any] = Field(default_factory=list)


class SoloJourney(BaseModel):
    started: str | None = None
    recent_topics: list[Any] = Field(default_factory=list)


class NextSolo(BaseModel):
    followup: str | None = None


class PersonalContext(BaseModel):
    """Per-user memory. Owned exclusively by that user."""

    core_needs: list[Any] = Field(default_factory=list)
    statements: list[Any] = Field(default_factory=list)
    partner_perspective: list[Any] = Field(default_factory=list)
    own_patterns: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    coaching_style: CoachingStyle = Field(default_factory=CoachingStyle)
    expressed: list[Any] = Field(default_factory=list)
    solo_journey: SoloJourney = Field(default_factory=SoloJourney)
    next_solo: NextSolo = Field(default_factory=NextSolo)

    @classmethod
    def empty(cls) -> PersonalContext:
        """The initial value at account creation and the reset target of erasure."""
        return cls()


# -- Shared memory -----------------------------------------------------------


class CoupleFacts(BaseModel):
    together_years: int | None = None
    together_since: str | None = None
    married_since: str | None = None
    children_count: int | None = None
    children_ages: list[Any] = Field(default_factory=list)
    children: list[Any] = Field(default_factory=list)
    work_dynamic: str | None = None
    work: dict[str, Any] = Field(default_factory=dict)
    date_frequency: str | None = None


class ExpressedNeeds(BaseModel):
    partner_a: str | None = None
    partner_b: str | None = None


class CoupleDynamics(BaseModel):
    expressed_needs: ExpressedNeeds = Field(default_factory=ExpressedNeeds)
    core_tension: str | None = None
    shared_concerns: list[Any] = Field(default_factory=list)
    patterns: list[Any] = Field(default_factory=list)


class CoupleJourney(BaseModel):
    started_with_amiya: str | None = None
    milestones: list[Any] = Field(default_factory=list)
    perpetual_issues: list[Any] = Field(default_factory=list)
    initial_topics: list[Any] = Field(default_factory=list)
    progress: list[Any] = Field(default_factory=list)
    recurring: list[Any] = Field(default_factory=list)
    recent_sessions: list[Any] = Field(default_factory=list)


class CoachingNotes(BaseModel):
    works_well: list[Any] = Field(default_factory=list)
    avoid: list[Any] = Field(default_factory=list)


class NextSession(BaseModel):
    followup: str | None = None
    followup_questions: list[Any] = Field(default_factory=list)
    topics_to_explore: list[Any] = Field(default_factory=list)
    open_agreements: list[Any] = Field(default_factory=list)
    sensitive: list[Any] = Field(default_factory=list)


class SharedContext(BaseModel):
    """Per-couple memory, jointly owned by both partners.

    A change made by either partner (or by the system) is visible to both.
    """

    facts: CoupleFacts = Field(default_factory=CoupleFacts)
    dynamics: CoupleDynamics = Field(default_factory=CoupleDynamics)
    strengths: list[Any] = Field(default_factory=list)
    journey: CoupleJourney = Field(default_factory=CoupleJourney)
    agreements: list[Any] = Field(default_factory=list)
    coaching: CoachingNotes = Field(default_factory=CoachingNotes)
    next_session: NextSession = Field(default_factory=NextSession)

    @classmethod
    def empty(cls) -> SharedContext:
        """The initial value at couple creation and the reset target of erasure."""
        return cls()


# -- Adaptive coaching -------------------------------------------------------


class CoachingProfile(BaseModel):
    """How a user responds to coaching, learned from session engagement.

    Reset in the same statement as the personal context.
    """

    communication_style: str = "unknown"
    avg_engagement_ratio: float | None = None
    sessions_analyzed: int = 0
    trust_level: str = "building"
    trend: str = "stable"
    best_approach: str = "balanced"
    last_significant_change: str | None = None
    last_updated: str | None = None
    notes: list[Any] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> CoachingProfile:
        return cls()
