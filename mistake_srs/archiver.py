"""
Overdue archiver.

Retires cards that have sat overdue for longer than the retention window.
The sweep re-queries for every page, so it can stop at any point and simply
continue on the next scheduled run.
"""

from __future__ import annotations

import logging
from typing import Optional

from mistake_srs.card_store import CardStore
from mistake_srs.clock import Clock, DayLike, format_timestamp, shift_day_key
from mistake_srs.config import SrsConfig
from mistake_srs.constants import ArchiveReason, CardStatus
from mistake_srs.database import DocumentStore
from mistake_srs.errors import CommitFailure, NotFound, ValidationError
from mistake_srs.projector import MistakeIndexProjector
from mistake_srs.schemas import Card

logger = logging.getLogger(__name__)


class OverdueArchiver:
    """Archives stale cards and restores them on request."""

    def __init__(
        self,
        store: DocumentStore,
        cards: CardStore,
        projector: MistakeIndexProjector,
        clock: Clock,
        config: SrsConfig,
    ):
        self.store = store
        self.cards = cards
        self.projector = projector
        self.clock = clock
        self.config = config

    def overdue_cutoff(self, today: DayLike = None) -> str:
        """Last due date that counts as stale on `today`."""
        return shift_day_key(self.clock.resolve_day(today), -self.config.overdue_retention_days)

    def archive_overdue_cards(self, user_id: str, today: DayLike = None) -> int:
        """
        Archive active cards whose review date is at least the retention
        window behind `today`.

        Cards are archived page by page (archive_batch_size per commit). A
        failed page stops the sweep; the cards left over are picked up by the
        next run.

        Returns:
            Number of cards archived by this call
        """
        cutoff = self.overdue_cutoff(today)
        logger.info("Archiving cards for %s due on or before %s", user_id, cutoff)

        archived = 0
        while True:
            page = self.cards.query_overdue_before(user_id, cutoff, self.config.archive_batch_size)
            if not page:
                break

            now = self.clock.now()
            fields = {
                "is_active": False,
                "archived_at": now,
                "archive_reason": ArchiveReason.OVERDUE,
                "updated_at": now,
            }

            # Partial update: scheduling fields are left exactly as stored
            stored = {
                "is_active": False,
                "archived_at": format_timestamp(now),
                "archive_reason": ArchiveReason.OVERDUE.value,
                "updated_at": format_timestamp(now),
            }

            batch = self.store.batch()
            retired = []
            for card in page:
                self.cards.stage_update(batch, card.id, stored)
                retired.append(card.model_copy(update=fields))

            try:
                self.store.commit(batch)
            except CommitFailure as exc:
                logger.error("Archive page of %d cards failed for %s: %s", len(page), user_id, exc)
                break

            archived += len(retired)
            logger.info("Archived batch of %d cards", len(retired))

            for card in retired:
                self.projector.project_quietly(card)

            if len(page) < self.config.archive_batch_size:
                break

        if archived:
            logger.info("Archived %d overdue cards for %s", archived, user_id)
        return archived

    def restore_archived_card(self, card_id: str) -> Card:
        """
        Put an archived card back into rotation.

        Unlike reactivation by a new mistake, the schedule (interval, ease,
        next review date) is kept as it was.

        Raises:
            NotFound: if the card does not exist
            ValidationError: for graduated cards, which come back through a new mistake
        """
        card = self.cards.get(card_id)
        if card is None:
            raise NotFound("card", card_id)
        if card.is_active:
            return card
        if card.status == CardStatus.GRADUATED:
            raise ValidationError(f"Graduated card {card_id} cannot be restored", field="card_id")

        batch = self.store.batch()
        restored = card.model_copy(update={
            "is_active": True,
            "archived_at": None,
            "archive_reason": None,
            "updated_at": self.clock.now(),
        })
        self.cards.stage(batch, restored)
        self.store.commit(batch)
        logger.info("Restored archived card: %s", card_id)

        self.projector.project_quietly(restored)
        return restored

    def get_archived_cards(
        self,
        user_id: str,
        reason: Optional[ArchiveReason] = None,
        limit: Optional[int] = None,
    ) -> list[Card]:
        return self.cards.get_archived_for_user(user_id, reason=reason, limit=limit)
