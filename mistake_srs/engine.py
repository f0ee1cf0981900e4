"""
Engine - public entry point of the mistake SRS

Wires the store, the components and the clock together and exposes one
method per operation used by the quiz, review and dashboard layers.

Usage:
    engine = build_engine()
    engine.create_or_reuse_cards("user_1", [{"question_id": "q42", "topic": "algebra"}])
    for card in engine.get_due_cards("user_1"):
        engine.submit_review(card.id, was_correct=True)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union

import pandas as pd
from pymongo.database import Database

from mistake_srs import stats
from mistake_srs.archiver import OverdueArchiver
from mistake_srs.attempt_log import AttemptLog, ReviewSessionLog
from mistake_srs.card_store import CardStore
from mistake_srs.clock import Clock, DayLike
from mistake_srs.config import SrsConfig, load_config
from mistake_srs.constants import DEFAULT_SESSION_TYPE, ArchiveReason
from mistake_srs.database import DocumentStore, get_database
from mistake_srs.due_sets import DueSetResolver
from mistake_srs.errors import ProjectionFailure
from mistake_srs.lifecycle import LifecycleManager
from mistake_srs.projector import MistakeIndexProjector
from mistake_srs.schemas import (
    Card,
    IntakeResult,
    MissedQuestion,
    ReviewAttempt,
    ReviewMetadata,
    ReviewOutcome,
    ReviewStats,
    SessionResult,
)
from mistake_srs.sessions import SessionBatchProcessor

logger = logging.getLogger(__name__)


class SrsEngine:
    """Facade over the SRS components, sharing one store, clock and config."""

    def __init__(self, store: DocumentStore, clock: Clock, config: SrsConfig):
        self.store = store
        self.clock = clock
        self.config = config

        self.cards = CardStore(store)
        self.attempts = AttemptLog(store)
        self.sessions = ReviewSessionLog(store)
        self.projector = MistakeIndexProjector(store, clock)

        self.lifecycle = LifecycleManager(store, self.cards, self.attempts, self.projector, clock, config)
        self.due_sets = DueSetResolver(store, self.cards, clock, config)
        self.archiver = OverdueArchiver(store, self.cards, self.projector, clock, config)
        self.batches = SessionBatchProcessor(self.lifecycle, self.sessions, clock)

    # ---- Intake ----

    def create_or_reuse_cards(
        self,
        user_id: str,
        missed_questions: Iterable[Union[MissedQuestion, dict]],
        session_id: Optional[str] = None,
        attempt_id: Optional[str] = None,
    ) -> IntakeResult:
        return self.lifecycle.create_or_reuse_cards(user_id, missed_questions, session_id, attempt_id)

    # ---- Due sets ----

    def get_due_cards(self, user_id: str, as_of: DayLike = None, limit: Optional[int] = None) -> list[Card]:
        return self.due_sets.get_due_cards(user_id, as_of, limit)

    def get_cards_due_on(self, user_id: str, exact_date: DayLike, limit: Optional[int] = None) -> list[Card]:
        return self.due_sets.get_cards_due_on(user_id, exact_date, limit)

    def get_overdue_count(self, user_id: str, as_of: DayLike = None) -> int:
        return self.due_sets.get_overdue_count(user_id, as_of)

    def refresh_due_flags(self, user_id: str, as_of: DayLike = None) -> int:
        return self.due_sets.refresh_due_flags(user_id, as_of)

    # ---- Reviews ----

    def submit_review(
        self,
        card_id: str,
        was_correct: bool,
        metadata: Optional[Union[ReviewMetadata, dict]] = None,
        *,
        user_id: Optional[str] = None,
    ) -> ReviewOutcome:
        return self.lifecycle.submit_review(card_id, was_correct, metadata, user_id=user_id)

    def submit_review_session(
        self,
        user_id: str,
        reviews: Iterable[Any],
        session_type: str = DEFAULT_SESSION_TYPE,
    ) -> SessionResult:
        return self.batches.submit_review_session(user_id, reviews, session_type)

    def get_recent_review_attempts(self, user_id: str, days: int = 30) -> list[ReviewAttempt]:
        """Attempts from the last `days` days, oldest first."""
        since = self.clock.now() - timedelta(days=days)
        return self.attempts.list_since(user_id, since)

    # ---- Archive ----

    def archive_overdue_cards(self, user_id: str, today: DayLike = None) -> int:
        return self.archiver.archive_overdue_cards(user_id, today)

    def restore_archived_card(self, card_id: str) -> Card:
        return self.archiver.restore_archived_card(card_id)

    def get_archived_cards(
        self,
        user_id: str,
        reason: Optional[ArchiveReason] = None,
        limit: Optional[int] = None,
    ) -> list[Card]:
        return self.archiver.get_archived_cards(user_id, reason, limit)

    # ---- Lookups ----

    def get_card(self, card_id: str) -> Optional[Card]:
        return self.cards.get(card_id)

    def get_all_cards(self, user_id: str) -> list[Card]:
        return self.cards.get_all_for_user(user_id)

    def get_active_cards(self, user_id: str) -> list[Card]:
        return self.cards.get_active_for_user(user_id)

    def get_cards_by_question_ids(self, user_id: str, question_ids: Iterable) -> list[Card]:
        return self.cards.get_by_question_ids(user_id, question_ids)

    # ---- Stats ----

    def get_review_stats(self, user_id: str, today: DayLike = None) -> ReviewStats:
        return stats.get_review_stats(self.cards, self.clock, user_id, today)

    def daily_review_summary(self, user_id: str, since: Optional[datetime] = None) -> pd.DataFrame:
        if since is None:
            since = self.clock.now() - timedelta(days=30)
        return stats.daily_review_summary(self.attempts, self.clock, user_id, since)

    # ---- Debugging ----

    def save_card(self, card: Card) -> Card:
        """Write a card as-is, bypassing the scheduler."""
        saved = self.cards.upsert(card)
        self.projector.project_quietly(saved)
        return saved

    def delete_card(self, card_id: str) -> bool:
        """Hard delete a card; its attempts are kept."""
        card = self.cards.get(card_id)
        if card is None:
            return False
        deleted = self.cards.delete(card_id)
        if deleted:
            logger.warning("Deleted SRS card %s", card_id)
            try:
                self.projector.clear(card.user_id, card.question_id)
            except ProjectionFailure as exc:
                logger.warning("Mistake index clear failed for %s: %s", card_id, exc)
        return deleted


def build_engine(
    config: Optional[SrsConfig] = None,
    database: Optional[Database] = None,
    clock: Optional[Clock] = None,
) -> SrsEngine:
    """
    Build an engine with default wiring.

    Args:
        config: Defaults to load_config() (environment / .env)
        database: Defaults to the configured MongoDB database
        clock: Defaults to the wall clock in the configured timezone
    """
    if config is None:
        config = load_config()
    if database is None:
        database = get_database(config)
    if clock is None:
        clock = Clock(config.timezone)
    return SrsEngine(DocumentStore(database, use_transactions=config.use_transactions), clock, config)
