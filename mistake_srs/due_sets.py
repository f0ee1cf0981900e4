"""
Due-set queries (read-only, except for the optional due-flag refresh).

Every query is bounded: either by a result limit or by the retention window,
so a learner returning after a long break never pulls an unbounded backlog.
"""

from __future__ import annotations

import logging
from typing import Optional

from mistake_srs.algorithm import is_card_due
from mistake_srs.card_store import CardStore
from mistake_srs.clock import Clock, DayLike, shift_day_key
from mistake_srs.config import SrsConfig
from mistake_srs.database import DocumentStore
from mistake_srs.errors import ValidationError
from mistake_srs.schemas import Card

logger = logging.getLogger(__name__)


class DueSetResolver:
    """Answers "what should this learner review" for a given day."""

    def __init__(self, store: DocumentStore, cards: CardStore, clock: Clock, config: SrsConfig):
        self.store = store
        self.cards = cards
        self.clock = clock
        self.config = config

    def _day(self, value: DayLike) -> str:
        try:
            return self.clock.resolve_day(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid date {value!r}: {exc}", field="date") from exc

    def _limit(self, limit: Optional[int]) -> Optional[int]:
        if limit is None:
            limit = self.config.due_query_limit
        if limit < 0:
            raise ValidationError("limit must not be negative", field="limit")
        return limit or None

    def get_due_cards(self, user_id: str, as_of: DayLike = None, limit: Optional[int] = None) -> list[Card]:
        """
        Active cards due on or before `as_of`, oldest due date first.

        Args:
            user_id: Learner
            as_of: Day key, date or datetime (defaults to today)
            limit: Max cards; None uses the configured cap, 0 means no cap

        Returns:
            Cards with is_due recomputed for `as_of`
        """
        day = self._day(as_of)
        cards = self.cards.query_due_as_of(user_id, day, self._limit(limit))
        logger.debug("Found %d cards due for %s as of %s", len(cards), user_id, day)
        return [card.model_copy(update={"is_due": True}) for card in cards]

    def get_cards_due_on(self, user_id: str, exact_date: DayLike, limit: Optional[int] = None) -> list[Card]:
        """
        Active cards due exactly on `exact_date`.

        Calendar reminders use this instead of get_due_cards() so that the
        overdue backlog never piles onto a single day.
        """
        if exact_date is None or exact_date == "":
            raise ValidationError("get_cards_due_on requires a date (YYYY-MM-DD)", field="exact_date")
        day = self._day(exact_date)
        today = self.clock.today()
        cards = self.cards.query_due_on(user_id, day, self._limit(limit))
        return [card.model_copy(update={"is_due": is_card_due(card, today)}) for card in cards]

    def get_overdue_count(self, user_id: str, as_of: DayLike = None) -> int:
        """Active cards overdue by less than the retention window."""
        day = self._day(as_of)
        window_start = shift_day_key(day, -self.config.overdue_retention_days)
        return self.cards.count_active_in_range(user_id, window_start, day)

    def refresh_due_flags(self, user_id: str, as_of: DayLike = None) -> int:
        """
        Persist recomputed is_due hints for a learner's active cards.

        Returns:
            Number of cards whose flag changed
        """
        day = self._day(as_of)
        batch = self.store.batch()
        for card in self.cards.get_active_for_user(user_id):
            due = is_card_due(card, day)
            if card.is_due != due:
                self.cards.stage_update(batch, card.id, {"is_due": due})

        changed = len(batch)
        if changed:
            self.store.commit(batch)
            logger.info("Refreshed due flags for %s: %d changed", user_id, changed)
        return changed
