"""
Lifecycle - card creation, reuse, reactivation and review submission

This module ties together the algorithm, the card store and the attempt log.
It is the only place that applies algorithm output to stored cards.

Main workflow:
1. Quiz layer reports mistakes -> create_or_reuse_cards()
2. Learner reviews a due card -> submit_review()
3. Card + attempt are committed together; the mistake index follows best-effort
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from mistake_srs.algorithm import compute_next_state, should_archive, snapshot_state
from mistake_srs.attempt_log import AttemptLog
from mistake_srs.card_store import CardStore
from mistake_srs.clock import Clock, shift_day_key
from mistake_srs.config import SrsConfig
from mistake_srs.constants import ArchiveReason, CardStatus
from mistake_srs.database import DocumentStore
from mistake_srs.errors import CardNotActive, NotFound, ValidationError
from mistake_srs.projector import MistakeIndexProjector
from mistake_srs.schemas import (
    Card,
    IntakeResult,
    MissedQuestion,
    ReviewAttempt,
    ReviewMetadata,
    ReviewOutcome,
    SkippedEntry,
    card_id_for,
)

logger = logging.getLogger(__name__)


def _schema_message(exc: SchemaValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "entry"
    return f"{location}: {first.get('msg')}"


def new_attempt_id(card_id: str, now: datetime) -> str:
    return f"attempt_{card_id}_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:8]}"


class LifecycleManager:
    """Creates, reuses and reactivates cards and applies review outcomes."""

    def __init__(
        self,
        store: DocumentStore,
        cards: CardStore,
        attempts: AttemptLog,
        projector: MistakeIndexProjector,
        clock: Clock,
        config: SrsConfig,
    ):
        self.store = store
        self.cards = cards
        self.attempts = attempts
        self.projector = projector
        self.clock = clock
        self.config = config

    # ---- Mistakes -> cards ----

    def create_or_reuse_cards(
        self,
        user_id: str,
        missed_questions: Iterable[Union[MissedQuestion, dict]],
        session_id: Optional[str] = None,
        attempt_id: Optional[str] = None,
    ) -> IntakeResult:
        """
        Make sure every missed question has an active card.

        - No card yet: create one due tomorrow
        - Active card: refresh topic/subtopic only (the schedule is kept)
        - Archived or graduated card: reactivate it with a fresh schedule

        All card writes go out in one commit. Malformed entries are skipped and
        reported in the result.

        Args:
            user_id: Learner who made the mistakes
            missed_questions: MissedQuestion models or dicts from the quiz layer
            session_id: Quiz session that produced the mistakes
            attempt_id: Quiz attempt that produced the mistakes

        Returns:
            IntakeResult with the affected cards and the skipped entries

        Raises:
            ValidationError: if user_id is missing
            CommitFailure: if the batch did not apply (no card was written)
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")

        now = self.clock.now()
        first_review = shift_day_key(self.clock.day_key(now), 1)

        pending: dict[str, Card] = {}
        skipped: list[SkippedEntry] = []

        for index, entry in enumerate(missed_questions or []):
            try:
                question = self._parse_mistake(entry, index)
            except ValidationError as exc:
                skipped.append(SkippedEntry(
                    index=index,
                    question_id=_raw_question_id(entry),
                    reason=str(exc),
                ))
                logger.warning("Skipping mistake entry %d for %s: %s", index, user_id, exc)
                continue

            card_id = card_id_for(user_id, question.question_id)
            existing = pending.get(card_id) or self.cards.get(card_id)

            if existing is not None and (
                existing.user_id != user_id or existing.question_id != question.question_id
            ):
                reason = f"Card {card_id} belongs to {existing.user_id}/{existing.question_id}"
                skipped.append(SkippedEntry(index=index, question_id=question.question_id, reason=reason))
                logger.error("Skipping mistake entry %d for %s: %s", index, user_id, reason)
                continue

            if existing is None:
                card = Card(
                    id=card_id,
                    user_id=user_id,
                    question_id=question.question_id,
                    topic=question.topic,
                    subtopic=question.subtopic,
                    status=CardStatus.NEW,
                    interval=1,
                    ease_factor=self.config.default_ease,
                    next_review_date=first_review,
                    created_from_attempt_id=attempt_id,
                    session_id=session_id,
                    created_at=now,
                    updated_at=now,
                )
                logger.info("Created SRS card %s (review on %s)", card.id, card.next_review_date)
            elif existing.is_active:
                card = existing.model_copy(update={
                    "topic": question.topic if question.topic is not None else existing.topic,
                    "subtopic": question.subtopic if question.subtopic is not None else existing.subtopic,
                    "updated_at": now,
                })
                logger.info("Reused SRS card %s (review on %s)", card.id, card.next_review_date)
            else:
                card = self._reactivate(existing, question, attempt_id, first_review, now)
                logger.info("Reactivated SRS card %s (review on %s)", card.id, card.next_review_date)

            pending[card_id] = card

        if pending:
            batch = self.store.batch()
            for card in pending.values():
                self.cards.stage(batch, card)
            self.store.commit(batch)
            logger.info("Saved %d SRS cards for user %s", len(pending), user_id)

            for card in pending.values():
                self.projector.project_quietly(card)

        return IntakeResult(cards=list(pending.values()), skipped=skipped)

    def _reactivate(
        self,
        card: Card,
        question: MissedQuestion,
        attempt_id: Optional[str],
        first_review: str,
        now: datetime,
    ) -> Card:
        """Fresh schedule on the same id, so old attempts stay linked."""
        return card.model_copy(update={
            "topic": question.topic if question.topic is not None else card.topic,
            "subtopic": question.subtopic if question.subtopic is not None else card.subtopic,
            "status": CardStatus.NEW,
            "interval": 1,
            "ease_factor": self.config.default_ease,
            "repetition_count": 0,
            "next_review_date": first_review,
            "last_reviewed_at": None,
            "is_due": False,
            "total_attempts": 0,
            "successful_attempts": 0,
            "failed_attempts": 0,
            "current_attempt_number": 0,
            "is_active": True,
            "archived_at": None,
            "archive_reason": None,
            "created_from_attempt_id": attempt_id or card.created_from_attempt_id,
            "updated_at": now,
        })

    @staticmethod
    def _parse_mistake(entry: Any, index: int) -> MissedQuestion:
        if isinstance(entry, MissedQuestion):
            return entry
        try:
            return MissedQuestion.model_validate(entry)
        except SchemaValidationError as exc:
            raise ValidationError(
                f"Invalid mistake entry: {_schema_message(exc)}",
                index=index,
                field="question_id",
            ) from exc

    # ---- Reviews ----

    def submit_review(
        self,
        card_id: str,
        was_correct: bool,
        metadata: Optional[Union[ReviewMetadata, dict]] = None,
        *,
        user_id: Optional[str] = None,
    ) -> ReviewOutcome:
        """
        Record one review and schedule the card's next review.

        The updated card and the attempt record are committed together. A card
        that reaches graduation is archived in the same commit.

        Args:
            card_id: Card being reviewed
            was_correct: Review outcome
            metadata: Answer details, time spent, review session id
            user_id: If given, the card must belong to this user

        Returns:
            ReviewOutcome with the updated card and the attempt

        Raises:
            NotFound: if the card does not exist
            ValidationError: bad input, wrong owner, or archived card
            CommitFailure: if the commit did not apply (nothing was written)
        """
        if not isinstance(was_correct, bool):
            raise ValidationError("was_correct must be a boolean", field="was_correct")
        meta = self._parse_metadata(metadata)

        card = self.cards.get(card_id)
        if card is None:
            raise NotFound("card", card_id)
        if user_id is not None and card.user_id != user_id:
            raise ValidationError(f"Card {card_id} does not belong to user {user_id}", field="card_id")
        if not card.is_active:
            raise CardNotActive(card_id)

        now = self.clock.now()
        updated = compute_next_state(card, was_correct, self.clock.day_key(now), self.config)
        updated = updated.model_copy(update={"last_reviewed_at": now, "updated_at": now})

        graduated = should_archive(updated)
        if graduated:
            updated = updated.model_copy(update={
                "is_active": False,
                "archived_at": now,
                "archive_reason": ArchiveReason.GRADUATED,
            })

        attempt = ReviewAttempt(
            id=new_attempt_id(card_id, now),
            card_id=card_id,
            user_id=card.user_id,
            question_id=card.question_id,
            attempt_number=card.current_attempt_number + 1,
            was_correct=was_correct,
            user_answer=meta.user_answer,
            correct_answer=meta.correct_answer,
            time_spent=meta.time_spent,
            attempted_at=now,
            state_before=snapshot_state(card),
            state_after=snapshot_state(updated),
            review_session_id=meta.review_session_id,
            created_at=now,
        )

        batch = self.store.batch()
        self.cards.stage(batch, updated)
        self.attempts.stage(batch, attempt)
        self.store.commit(batch)

        logger.info(
            "Review processed: %s correct=%s interval=%d status=%s next=%s",
            card_id, was_correct, updated.interval, updated.status.value, updated.next_review_date,
        )
        if graduated:
            logger.info("Card graduated and archived: %s", card_id)

        self.projector.project_quietly(updated)
        return ReviewOutcome(card=updated, attempt=attempt)

    @staticmethod
    def _parse_metadata(metadata: Optional[Union[ReviewMetadata, dict]]) -> ReviewMetadata:
        if metadata is None:
            return ReviewMetadata()
        if isinstance(metadata, ReviewMetadata):
            return metadata
        try:
            return ReviewMetadata.model_validate(metadata)
        except SchemaValidationError as exc:
            raise ValidationError(f"Invalid review metadata: {_schema_message(exc)}") from exc


def _raw_question_id(entry: Any) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    for key in ("question_id", "questionId", "ID"):
        value = entry.get(key)
        if value not in (None, ""):
            return str(value)
    return None
