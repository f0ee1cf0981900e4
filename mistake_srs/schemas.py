"""
Pydantic models for SRS documents.

These models define the structure of the MongoDB documents (cards, review
attempts, review sessions, mistake-index entries) and validate the inputs
handed over by the quiz layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from mistake_srs.clock import format_timestamp
from mistake_srs.constants import (
    DEFAULT_EASE,
    DEFAULT_SESSION_TYPE,
    ArchiveReason,
    CardStatus,
    MistakeBucket,
)


# Stored as fixed-width UTC ISO strings so range queries sort correctly
Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str)]


def escape_id_part(value: str) -> str:
    """Percent-escape '%' and '_' so joined id parts stay unambiguous."""
    return str(value).replace("%", "%25").replace("_", "%5F")


def card_id_for(user_id: str, question_id: str) -> str:
    """
    Deterministic card id: one card per (user, question).

    Parts are escaped, so ("alice_x", "1") and ("alice", "x_1") never share
    an id.
    """
    return f"card_{escape_id_part(user_id)}_{escape_id_part(question_id)}"


# ---- Scheduling state ----

class StateSnapshot(BaseModel):
    """Scheduling fields captured before/after a review."""
    interval: int
    ease_factor: float
    repetition_count: int
    status: CardStatus


class Card(BaseModel):
    """
    Scheduling state for one missed question of one learner.

    Archived cards are never deleted; they keep their id so that past review
    attempts stay linked when the card is reactivated.
    """
    # Identity
    id: str
    user_id: str
    question_id: str
    topic: Optional[str] = None
    subtopic: Optional[str] = None

    # Scheduling state
    status: CardStatus = CardStatus.NEW
    interval: int = Field(default=1, ge=1)  # days
    ease_factor: float = DEFAULT_EASE
    repetition_count: int = Field(default=0, ge=0)  # consecutive correct answers
    next_review_date: str  # day key, YYYY-MM-DD
    last_reviewed_at: Optional[Timestamp] = None
    is_due: bool = False  # cached hint, recomputed on read

    # Counters
    total_attempts: int = Field(default=0, ge=0)
    successful_attempts: int = Field(default=0, ge=0)
    failed_attempts: int = Field(default=0, ge=0)
    current_attempt_number: int = Field(default=0, ge=0)

    # Lifecycle
    is_active: bool = True
    archived_at: Optional[Timestamp] = None
    archive_reason: Optional[ArchiveReason] = None

    # Provenance
    created_from_attempt_id: Optional[str] = None
    session_id: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp


class ReviewAttempt(BaseModel):
    """Append-only audit record of a single review."""
    id: str
    card_id: str
    user_id: str
    question_id: str

    attempt_number: int
    was_correct: bool
    user_answer: Any = None
    correct_answer: Any = None

    time_spent: Optional[float] = None  # seconds
    attempted_at: Timestamp

    state_before: StateSnapshot
    state_after: StateSnapshot

    review_session_id: Optional[str] = None
    created_at: Timestamp


class ReviewSession(BaseModel):
    """Summary of reviews submitted together."""
    id: str
    user_id: str

    cards_reviewed: int = 0
    cards_correct: int = 0
    cards_failed: int = 0
    cards_errored: int = 0  # entries that never reached a card commit
    total_time_spent: float = 0.0  # seconds

    session_type: str = DEFAULT_SESSION_TYPE
    started_at: Timestamp
    completed_at: Timestamp
    created_at: Timestamp


class MistakeIndexEntry(BaseModel):
    """Denormalized SRS summary merged into the mistake notebook."""
    user_id: str
    question_id: str
    has_card: bool
    is_active: bool
    status: Optional[CardStatus] = None
    bucket: MistakeBucket
    card_id: Optional[str] = None
    updated_at: Timestamp


# ---- Inputs from the quiz / review layers ----

class MissedQuestion(BaseModel):
    """One wrongly answered question reported by the quiz layer."""
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(validation_alias=AliasChoices("question_id", "questionId", "ID"))
    topic: Optional[str] = Field(default=None, validation_alias=AliasChoices("topic", "Topic"))
    subtopic: Optional[str] = Field(default=None, validation_alias=AliasChoices("subtopic", "Subtopic"))

    @field_validator("question_id", mode="before")
    @classmethod
    def _normalize_question_id(cls, value):
        if isinstance(value, bool) or value is None:
            raise ValueError("question_id is required")
        if isinstance(value, int):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("question_id is required")
        return value

    @field_validator("subtopic", mode="before")
    @classmethod
    def _empty_subtopic(cls, value):
        return value or None


class ReviewMetadata(BaseModel):
    """Optional details recorded alongside a review outcome."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_answer: Any = None
    correct_answer: Any = None
    time_spent: Optional[float] = Field(default=None, ge=0)
    review_session_id: Optional[str] = None


class ReviewSubmission(ReviewMetadata):
    """A single review inside a review session."""
    card_id: str
    was_correct: bool


# ---- Results ----

class SkippedEntry(BaseModel):
    index: int
    question_id: Optional[str] = None
    reason: str


class IntakeResult(BaseModel):
    """Outcome of turning a quiz's mistakes into cards."""
    cards: list[Card] = Field(default_factory=list)
    skipped: list[SkippedEntry] = Field(default_factory=list)


class ReviewOutcome(BaseModel):
    card: Card
    attempt: ReviewAttempt


class ReviewResult(BaseModel):
    """Per-review entry of a session result."""
    index: int
    card_id: Optional[str] = None
    ok: bool
    outcome: Optional[ReviewOutcome] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class SessionResult(BaseModel):
    session: ReviewSession
    results: list[ReviewResult] = Field(default_factory=list)
    session_recorded: bool = True


class ReviewStats(BaseModel):
    """Card counts and performance for one learner."""
    total: int = 0
    active: int = 0
    archived: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    due_today: int = 0
    total_attempts: int = 0
    success_rate: int = 0  # percent
