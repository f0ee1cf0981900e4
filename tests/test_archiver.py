"""
Tests for the overdue sweep and archive restore.
"""

import pytest

from mistake_srs import CommitFailure, NotFound, SrsConfig, ValidationError, build_engine
from mistake_srs.constants import ArchiveReason, CardStatus, MISTAKES_COLLECTION


class TestArchiveOverdue:

    def test_untouched_card_archived_on_day_15(self, engine, clock, db):
        card_id = engine.create_or_reuse_cards("u1", [{"question_id": "Q1"}]).cards[0].id
        clock.advance(days=15)  # today - 14 == 2026-01-02 == next_review_date

        assert engine.archive_overdue_cards("u1") == 1
        card = engine.get_card(card_id)
        assert card.is_active is False
        assert card.archive_reason == ArchiveReason.OVERDUE
        assert card.archived_at == clock.now()
        assert db[MISTAKES_COLLECTION].find_one({"_id": "u1_Q1"})["bucket"] == "archived"

    def test_day_before_boundary_keeps_card(self, engine, clock):
        engine.create_or_reuse_cards("u1", [{"question_id": "Q1"}])
        clock.advance(days=14)
        assert engine.archive_overdue_cards("u1") == 0
        assert engine.get_card("card_u1_Q1").is_active

    def test_schedule_is_kept(self, engine, make_card):
        engine.save_card(make_card("q1", status=CardStatus.REVIEW, interval=8, ease_factor=2.6,
                                   next_review_date="2025-12-01"))
        engine.archive_overdue_cards("u1")
        card = engine.get_card("card_u1_q1")
        assert (card.status, card.interval, card.ease_factor) == (CardStatus.REVIEW, 8, 2.6)

    def test_second_run_is_noop(self, engine, make_card):
        engine.save_card(make_card("q1", next_review_date="2025-12-01"))
        assert engine.archive_overdue_cards("u1") == 1
        assert engine.archive_overdue_cards("u1") == 0

    def test_only_touches_the_given_user(self, engine, make_card):
        engine.save_card(make_card("q1", next_review_date="2025-12-01"))
        engine.save_card(make_card("q1", user_id="u2", next_review_date="2025-12-01"))
        engine.archive_overdue_cards("u1")
        assert engine.get_card("card_u2_q1").is_active

    def test_pages_through_large_backlog(self, db, clock, make_card):
        engine = build_engine(config=SrsConfig(use_transactions=False, archive_batch_size=2), database=db, clock=clock)
        for index in range(5):
            engine.save_card(make_card(f"q{index}", next_review_date="2025-11-01"))
        engine.save_card(make_card("recent", next_review_date="2025-12-30"))

        assert engine.archive_overdue_cards("u1") == 5
        assert [c.question_id for c in engine.get_active_cards("u1")] == ["recent"]

    def test_failed_page_stops_sweep(self, db, clock, make_card, monkeypatch):
        engine = build_engine(config=SrsConfig(use_transactions=False, archive_batch_size=2), database=db, clock=clock)
        for index in range(5):
            engine.save_card(make_card(f"q{index}", next_review_date="2025-11-01"))

        original = engine.store.commit
        commits = []

        def flaky(batch):
            commits.append(batch)
            if len(commits) == 2:
                raise CommitFailure("primary stepped down")
            original(batch)

        monkeypatch.setattr(engine.store, "commit", flaky)
        assert engine.archive_overdue_cards("u1") == 2
        assert len(engine.get_active_cards("u1")) == 3

        monkeypatch.setattr(engine.store, "commit", original)
        assert engine.archive_overdue_cards("u1") == 3


class TestRestore:

    def test_restore_keeps_schedule(self, engine, make_card):
        engine.save_card(make_card("q1", status=CardStatus.LEARNING, interval=3, ease_factor=2.3,
                                   next_review_date="2025-12-01"))
        engine.archive_overdue_cards("u1")

        card = engine.restore_archived_card("card_u1_q1")
        assert card.is_active is True
        assert card.archive_reason is None
        assert card.archived_at is None
        assert (card.interval, card.ease_factor, card.next_review_date) == (3, 2.3, "2025-12-01")
        assert engine.get_card("card_u1_q1") == card

    def test_restore_active_card_is_noop(self, engine, make_card):
        saved = engine.save_card(make_card("q1"))
        assert engine.restore_archived_card("card_u1_q1") == saved

    def test_restore_graduated_refused(self, engine, make_card):
        engine.save_card(make_card("q1", status=CardStatus.GRADUATED, interval=57, is_active=False,
                                   archive_reason=ArchiveReason.GRADUATED))
        with pytest.raises(ValidationError):
            engine.restore_archived_card("card_u1_q1")

    def test_restore_missing(self, engine):
        with pytest.raises(NotFound):
            engine.restore_archived_card("card_u1_nope")


class TestArchivedListing:

    def test_filter_by_reason(self, engine, make_card):
        engine.save_card(make_card("q1", next_review_date="2025-12-01"))
        engine.save_card(make_card("q2", status=CardStatus.GRADUATED, is_active=False,
                                   archive_reason=ArchiveReason.GRADUATED))
        engine.archive_overdue_cards("u1")

        overdue = engine.get_archived_cards("u1", reason=ArchiveReason.OVERDUE)
        assert [c.question_id for c in overdue] == ["q1"]
        assert len(engine.get_archived_cards("u1")) == 2
