"""
Mistake SRS - spaced repetition for missed quiz questions

Every wrongly answered question becomes a card that is reviewed on a growing
interval until the learner has it down, then retired.

Quick start:
    from mistake_srs import build_engine, init_db

    engine = build_engine()
    init_db(engine.store.db)

    # Quiz finished: turn the mistakes into cards
    engine.create_or_reuse_cards("user_1", [{"question_id": "q42", "topic": "algebra"}])

    # Review what is due today
    for card in engine.get_due_cards("user_1"):
        engine.submit_review(card.id, was_correct=True)
"""

# Engine API
from mistake_srs.engine import SrsEngine, build_engine

# Scheduling algorithm (no database calls)
from mistake_srs.algorithm import compute_next_state, derive_bucket, is_card_due

# Database API
from mistake_srs.database import DocumentStore, get_database, init_db, reset_db

# Configuration and time
from mistake_srs.config import SrsConfig, load_config
from mistake_srs.clock import Clock, FixedClock, shift_day_key

# Constants
from mistake_srs.constants import ArchiveReason, CardStatus, MistakeBucket

# Errors
from mistake_srs.errors import (
    CardNotActive,
    CommitFailure,
    NotFound,
    ProjectionFailure,
    SrsError,
    ValidationError,
)

# Models
from mistake_srs.schemas import (
    Card,
    IntakeResult,
    MissedQuestion,
    ReviewAttempt,
    ReviewMetadata,
    ReviewOutcome,
    ReviewSession,
    ReviewStats,
    ReviewSubmission,
    SessionResult,
)


__all__ = [
    # Engine
    "SrsEngine",
    "build_engine",

    # Core algorithm
    "compute_next_state",
    "derive_bucket",
    "is_card_due",

    # Database operations
    "DocumentStore",
    "get_database",
    "init_db",
    "reset_db",

    # Configuration and time
    "SrsConfig",
    "load_config",
    "Clock",
    "FixedClock",
    "shift_day_key",

    # Enums
    "ArchiveReason",
    "CardStatus",
    "MistakeBucket",

    # Errors
    "SrsError",
    "NotFound",
    "ValidationError",
    "CardNotActive",
    "CommitFailure",
    "ProjectionFailure",

    # Models
    "Card",
    "IntakeResult",
    "MissedQuestion",
    "ReviewAttempt",
    "ReviewMetadata",
    "ReviewOutcome",
    "ReviewSession",
    "ReviewStats",
    "ReviewSubmission",
    "SessionResult",
]
