"""
MongoDB repository for review attempts and review sessions.

Tracks every review outcome in an append-only log, independent of card
mutation. Attempts are inserted with create-only semantics and are never
updated or deleted by the engine.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, DESCENDING

from mistake_srs.clock import format_timestamp
from mistake_srs.constants import ATTEMPTS_COLLECTION, SESSIONS_COLLECTION
from mistake_srs.database import DocumentStore, WriteBatch, from_document
from mistake_srs.schemas import ReviewAttempt, ReviewSession


class AttemptLog:
    """Append-only audit trail of review attempts."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = store.collection(ATTEMPTS_COLLECTION)

    def append(self, attempt: ReviewAttempt) -> ReviewAttempt:
        """
        Write a single attempt on its own.

        Raises:
            CommitFailure: if the write failed or the id already exists
        """
        batch = self.store.batch()
        self.stage(batch, attempt)
        self.store.commit(batch)
        return attempt

    def stage(self, batch: WriteBatch, attempt: ReviewAttempt) -> None:
        """Add the attempt to a pending commit (create-only)."""
        batch.create(ATTEMPTS_COLLECTION, attempt)

    def get(self, attempt_id: str) -> Optional[ReviewAttempt]:
        return from_document(ReviewAttempt, self.collection.find_one({"_id": attempt_id}))

    def list_since(self, user_id: str, since: datetime) -> list[ReviewAttempt]:
        """Attempts by a user at or after `since`, oldest first."""
        cursor = self.collection.find({
            "user_id": user_id,
            "attempted_at": {"$gte": format_timestamp(since)},
        }).sort([("attempted_at", ASCENDING)])
        return [from_document(ReviewAttempt, doc) for doc in cursor]

    def list_for_card(self, card_id: str) -> list[ReviewAttempt]:
        cursor = self.collection.find({"card_id": card_id}).sort([("attempted_at", ASCENDING)])
        return [from_document(ReviewAttempt, doc) for doc in cursor]


class ReviewSessionLog:
    """Summary records written once per review session."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = store.collection(SESSIONS_COLLECTION)

    def record(self, session: ReviewSession) -> ReviewSession:
        batch = self.store.batch()
        batch.create(SESSIONS_COLLECTION, session)
        self.store.commit(batch)
        return session

    def list_for_user(self, user_id: str, limit: int = 20) -> list[ReviewSession]:
        """Most recent sessions first."""
        cursor = (
            self.collection.find({"user_id": user_id})
            .sort([("started_at", DESCENDING)])
            .limit(limit)
        )
        return [from_document(ReviewSession, doc) for doc in cursor]
