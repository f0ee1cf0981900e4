"""
MongoDB repository for SRS cards.

Provides lookups by id and user plus the indexed range queries on
next_review_date that back the due-set resolver and the archiver.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from mistake_srs.constants import CARDS_COLLECTION, ArchiveReason
from mistake_srs.database import DocumentStore, WriteBatch, from_document, to_document
from mistake_srs.errors import CommitFailure
from mistake_srs.schemas import Card


class CardStore:
    """Card persistence; every write replaces or touches a whole document."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = store.collection(CARDS_COLLECTION)

    # ---- Reads ----

    def get(self, card_id: str) -> Optional[Card]:
        return from_document(Card, self.collection.find_one({"_id": card_id}))

    def get_all_for_user(self, user_id: str) -> list[Card]:
        return self._find({"user_id": user_id})

    def get_active_for_user(self, user_id: str) -> list[Card]:
        return self._find({"user_id": user_id, "is_active": True})

    def get_archived_for_user(
        self,
        user_id: str,
        reason: Optional[ArchiveReason] = None,
        limit: Optional[int] = None,
    ) -> list[Card]:
        """Archived cards, most recently archived first."""
        query = {"user_id": user_id, "is_active": False}
        if reason is not None:
            query["archive_reason"] = ArchiveReason(reason).value
        return self._find(query, sort=[("archived_at", DESCENDING)], limit=limit)

    def get_by_question_ids(self, user_id: str, question_ids: Iterable) -> list[Card]:
        ids = [str(q) for q in question_ids if q is not None and str(q)]
        if not ids:
            return []
        return self._find({"user_id": user_id, "question_id": {"$in": ids}})

    def query_due_as_of(self, user_id: str, day_key: str, limit: Optional[int] = None) -> list[Card]:
        """Active cards with next_review_date <= day_key, oldest first."""
        query = {"user_id": user_id, "is_active": True, "next_review_date": {"$lte": day_key}}
        return self._find(query, sort=[("next_review_date", ASCENDING)], limit=limit)

    def query_due_on(self, user_id: str, day_key: str, limit: Optional[int] = None) -> list[Card]:
        """Active cards due exactly on day_key (no backlog)."""
        query = {"user_id": user_id, "is_active": True, "next_review_date": day_key}
        return self._find(query, sort=[("_id", ASCENDING)], limit=limit)

    def query_overdue_before(self, user_id: str, cutoff_inclusive: str, limit: int) -> list[Card]:
        """Active cards with next_review_date <= cutoff, oldest first."""
        query = {"user_id": user_id, "is_active": True, "next_review_date": {"$lte": cutoff_inclusive}}
        return self._find(query, sort=[("next_review_date", ASCENDING)], limit=limit)

    def count_active_in_range(self, user_id: str, start_inclusive: str, end_exclusive: str) -> int:
        return self.collection.count_documents({
            "user_id": user_id,
            "is_active": True,
            "next_review_date": {"$gte": start_inclusive, "$lt": end_exclusive},
        })

    def user_ids_with_active_cards(self) -> list[str]:
        return sorted(self.collection.distinct("user_id", {"is_active": True}))

    # ---- Writes ----

    def upsert(self, card: Card) -> Card:
        """Fully replace the stored card (insert if missing)."""
        try:
            self.collection.replace_one({"_id": card.id}, to_document(card), upsert=True)
        except PyMongoError as exc:
            raise CommitFailure(f"Failed to save card {card.id}: {exc}") from exc
        return card

    def stage(self, batch: WriteBatch, card: Card) -> None:
        """Add a full-replace write for this card to a pending batch."""
        batch.set(CARDS_COLLECTION, card)

    def stage_update(self, batch: WriteBatch, card_id: str, fields: dict) -> None:
        batch.update(CARDS_COLLECTION, card_id, fields)

    def delete(self, card_id: str) -> bool:
        """Hard delete. Debug use only; normal operation archives instead."""
        try:
            return self.collection.delete_one({"_id": card_id}).deleted_count > 0
        except PyMongoError as exc:
            raise CommitFailure(f"Failed to delete card {card_id}: {exc}") from exc

    # ---- Internals ----

    def _find(self, query: dict, sort=None, limit: Optional[int] = None) -> list[Card]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(int(limit))
        return [from_document(Card, doc) for doc in cursor]
