"""
Review sessions - several reviews submitted together.

Each review is committed on its own; one failing review never blocks the
others. The session summary is written once, after the last review.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Optional

from pydantic import ValidationError as SchemaValidationError
from pymongo.errors import PyMongoError

from mistake_srs.attempt_log import ReviewSessionLog
from mistake_srs.clock import Clock
from mistake_srs.constants import DEFAULT_SESSION_TYPE
from mistake_srs.errors import CommitFailure, SrsError, ValidationError
from mistake_srs.lifecycle import LifecycleManager, _schema_message
from mistake_srs.schemas import ReviewMetadata, ReviewResult, ReviewSession, ReviewSubmission, SessionResult

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"review_session_{uuid.uuid4().hex}"


class SessionBatchProcessor:
    def __init__(self, lifecycle: LifecycleManager, sessions: ReviewSessionLog, clock: Clock):
        self.lifecycle = lifecycle
        self.sessions = sessions
        self.clock = clock

    def submit_review_session(
        self,
        user_id: str,
        reviews: Iterable[Any],
        session_type: str = DEFAULT_SESSION_TYPE,
    ) -> SessionResult:
        """
        Submit a batch of reviews and record a session summary.

        Args:
            user_id: Learner; every card must belong to them
            reviews: ReviewSubmission models or dicts (camelCase keys accepted)
            session_type: Label stored on the session

        Returns:
            SessionResult with the session summary and one result per review
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")

        reviews = list(reviews or [])
        session_id = new_session_id()
        started_at = self.clock.now()

        results: list[ReviewResult] = []
        correct = failed = errored = 0
        time_spent = 0.0

        for index, entry in enumerate(reviews):
            card_id = _raw_card_id(entry)
            try:
                submission = self._parse_submission(entry, index)
                card_id = submission.card_id
                metadata = ReviewMetadata(
                    user_answer=submission.user_answer,
                    correct_answer=submission.correct_answer,
                    time_spent=submission.time_spent,
                    review_session_id=session_id,
                )
                outcome = self.lifecycle.submit_review(
                    submission.card_id,
                    submission.was_correct,
                    metadata,
                    user_id=user_id,
                )
            # Card reads are not wrapped, so driver errors are tallied here too
            except (SrsError, PyMongoError) as exc:
                errored += 1
                logger.warning("Review %d in session %s failed (%s): %s", index, session_id, card_id, exc)
                results.append(ReviewResult(
                    index=index,
                    card_id=card_id,
                    ok=False,
                    error=str(exc),
                    error_type=type(exc).__name__,
                ))
                continue

            if outcome.attempt.was_correct:
                correct += 1
            else:
                failed += 1
            time_spent += outcome.attempt.time_spent or 0.0
            results.append(ReviewResult(index=index, card_id=card_id, ok=True, outcome=outcome))

        now = self.clock.now()
        session = ReviewSession(
            id=session_id,
            user_id=user_id,
            cards_reviewed=len(reviews),
            cards_correct=correct,
            cards_failed=failed,
            cards_errored=errored,
            total_time_spent=time_spent,
            session_type=session_type,
            started_at=started_at,
            completed_at=now,
            created_at=now,
        )

        recorded = True
        try:
            self.sessions.record(session)
        except CommitFailure as exc:
            recorded = False
            logger.error("Could not record review session %s: %s", session_id, exc)

        logger.info(
            "Review session %s: %d reviewed, %d correct, %d failed, %d errored",
            session_id, session.cards_reviewed, correct, failed, errored,
        )
        return SessionResult(session=session, results=results, session_recorded=recorded)

    @staticmethod
    def _parse_submission(entry: Any, index: int) -> ReviewSubmission:
        if isinstance(entry, ReviewSubmission):
            return entry
        try:
            return ReviewSubmission.model_validate(entry)
        except SchemaValidationError as exc:
            raise ValidationError(f"Invalid review: {_schema_message(exc)}", index=index) from exc


def _raw_card_id(entry: Any) -> Optional[str]:
    if isinstance(entry, ReviewSubmission):
        return entry.card_id
    if isinstance(entry, dict):
        value = entry.get("card_id", entry.get("cardId"))
        return str(value) if value is not None else None
    return None
