"""
SRS Constants and Parameters

Enums and default tuning values for the mistake-card scheduler in one place.
Every numeric default here can be overridden through SrsConfig.
"""

from enum import Enum


# ---- Card lifecycle ----

class CardStatus(str, Enum):
    """Scheduling phase of a card."""
    NEW = "new"                # Created from a mistake, never reviewed
    LEARNING = "learning"      # Walking the learning-step sequence
    REVIEW = "review"          # Interval grows by ease factor
    GRADUATED = "graduated"    # Interval crossed the graduation threshold


class ArchiveReason(str, Enum):
    """Why a card stopped being active."""
    GRADUATED = "graduated"
    OVERDUE = "overdue_14_days"


class MistakeBucket(str, Enum):
    """Coarse progress bucket shown by the mistake notebook."""
    NOT_IN_SRS = "not_in_srs"
    NEW = "new"
    PROGRESSING = "progressing"
    NEAR = "near"
    ARCHIVED = "archived"


# ---- Collections ----

CARDS_COLLECTION = "spaced_repetition_cards"
ATTEMPTS_COLLECTION = "review_attempts"
SESSIONS_COLLECTION = "review_sessions"
MISTAKES_COLLECTION = "mistakes"


# ---- Scheduling defaults ----

LEARNING_STEPS = (1, 3)        # Days between reviews while learning
GRADUATION_THRESHOLD_DAYS = 30
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 3.0
EASE_BONUS = 0.1               # Added after a correct review-phase answer
EASE_PENALTY = 0.2             # Subtracted after any incorrect answer


# ---- Housekeeping defaults ----

OVERDUE_RETENTION_DAYS = 14    # Overdue cards older than this get archived
ARCHIVE_BATCH_SIZE = 500       # Cards per archive commit
DUE_QUERY_LIMIT = 100          # Default cap on due-card queries

REFERENCE_TIMEZONE = "Asia/Hong_Kong"
DEFAULT_SESSION_TYPE = "spaced_repetition"
