"""
Mistake index projection.

Merges a small SRS summary into each mistake-notebook document so the
notebook UI can show a card's bucket without querying the card collection.
The projection is write-only and rebuildable: nothing in the engine reads it
back, and a failed write never undoes a card commit.
"""

from __future__ import annotations

import logging
from typing import Optional

from pymongo.errors import PyMongoError

from mistake_srs.algorithm import derive_bucket
from mistake_srs.constants import MISTAKES_COLLECTION
from mistake_srs.database import DocumentStore
from mistake_srs.errors import ProjectionFailure
from mistake_srs.schemas import Card, MistakeIndexEntry, escape_id_part

logger = logging.getLogger(__name__)


def mistake_doc_id(user_id: str, question_id: str) -> str:
    return f"{escape_id_part(user_id)}_{escape_id_part(question_id)}"


class MistakeIndexProjector:
    """Writes MistakeIndexEntry fields into the mistakes collection."""

    def __init__(self, store: DocumentStore, clock):
        self.collection = store.collection(MISTAKES_COLLECTION)
        self.clock = clock

    def project(self, card: Card) -> MistakeIndexEntry:
        entry = MistakeIndexEntry(
            user_id=card.user_id,
            question_id=card.question_id,
            has_card=True,
            is_active=card.is_active,
            status=card.status,
            bucket=derive_bucket(card),
            card_id=card.id,
            updated_at=self.clock.now(),
        )
        self._merge(entry)
        return entry

    def clear(self, user_id: str, question_id: str) -> MistakeIndexEntry:
        """Mark a question as no longer backed by a card."""
        entry = MistakeIndexEntry(
            user_id=user_id,
            question_id=question_id,
            has_card=False,
            is_active=False,
            status=None,
            bucket=derive_bucket(None),
            card_id=None,
            updated_at=self.clock.now(),
        )
        self._merge(entry)
        return entry

    def project_quietly(self, card: Card) -> Optional[MistakeIndexEntry]:
        """Best-effort projection after a committed write; failures are logged."""
        try:
            return self.project(card)
        except ProjectionFailure as exc:
            logger.warning("Mistake index update failed for %s: %s", card.id, exc)
            return None

    def _merge(self, entry: MistakeIndexEntry) -> None:
        # $set keeps the notebook's own fields on the same document
        fields = entry.model_dump(mode="json")
        try:
            self.collection.update_one(
                {"_id": mistake_doc_id(entry.user_id, entry.question_id)},
                {"$set": fields},
                upsert=True,
            )
        except PyMongoError as exc:
            raise ProjectionFailure(
                f"Could not project {entry.user_id}/{entry.question_id}: {exc}"
            ) from exc
