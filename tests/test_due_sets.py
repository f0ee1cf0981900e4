"""
Tests for due-card queries and the cached due flag.
"""

from datetime import date, datetime, timezone

import pytest

from mistake_srs import SrsConfig, ValidationError, build_engine


@pytest.fixture
def seeded(engine, make_card):
    # Today is 2026-01-01
    for question_id, next_review in [
        ("old", "2025-12-10"),
        ("window", "2025-12-25"),
        ("yesterday", "2025-12-31"),
        ("today", "2026-01-01"),
        ("tomorrow", "2026-01-02"),
    ]:
        engine.save_card(make_card(question_id, next_review_date=next_review))
    engine.save_card(make_card("archived", next_review_date="2025-12-31", is_active=False))
    engine.save_card(make_card("other_user", user_id="u2", next_review_date="2025-12-31"))
    return engine


class TestGetDueCards:

    def test_includes_backlog_oldest_first(self, seeded):
        due = seeded.get_due_cards("u1")
        assert [c.question_id for c in due] == ["old", "window", "yesterday", "today"]
        assert all(c.is_due for c in due)

    def test_every_result_is_active_and_due(self, seeded):
        for card in seeded.get_due_cards("u1", as_of="2026-03-01"):
            assert card.is_active
            assert card.next_review_date <= "2026-03-01"
            assert card.user_id == "u1"

    def test_limit(self, seeded):
        assert [c.question_id for c in seeded.get_due_cards("u1", limit=2)] == ["old", "window"]

    def test_configured_cap(self, db, clock, make_card):
        engine = build_engine(config=SrsConfig(use_transactions=False, due_query_limit=3), database=db, clock=clock)
        for index in range(5):
            engine.save_card(make_card(f"q{index}", next_review_date="2025-12-30"))
        assert len(engine.get_due_cards("u1")) == 3
        assert len(engine.get_due_cards("u1", limit=0)) == 5

    def test_negative_limit_rejected(self, seeded):
        with pytest.raises(ValidationError):
            seeded.get_due_cards("u1", limit=-1)

    def test_accepts_date_and_datetime(self, seeded):
        assert len(seeded.get_due_cards("u1", as_of=date(2025, 12, 31))) == 3
        # 2025-12-31T20:00Z is already 2026-01-01 in Hong Kong
        evening = datetime(2025, 12, 31, 20, 0, tzinfo=timezone.utc)
        assert len(seeded.get_due_cards("u1", as_of=evening)) == 4

    def test_bad_date_rejected(self, seeded):
        with pytest.raises(ValidationError):
            seeded.get_due_cards("u1", as_of="01/01/2026")


class TestGetCardsDueOn:

    def test_exact_day_only(self, seeded):
        assert [c.question_id for c in seeded.get_cards_due_on("u1", "2025-12-31")] == ["yesterday"]
        assert seeded.get_cards_due_on("u1", "2025-12-30") == []

    def test_future_day_is_not_due_yet(self, seeded):
        cards = seeded.get_cards_due_on("u1", "2026-01-02")
        assert [c.question_id for c in cards] == ["tomorrow"]
        assert cards[0].is_due is False

    @pytest.mark.parametrize("value", [None, ""])
    def test_date_required(self, seeded, value):
        with pytest.raises(ValidationError):
            seeded.get_cards_due_on("u1", value)


class TestOverdueCount:

    def test_counts_only_the_retention_window(self, seeded):
        # [2025-12-18, 2026-01-01): window + yesterday
        assert seeded.get_overdue_count("u1") == 2

    def test_nothing_overdue(self, engine):
        assert engine.get_overdue_count("u1") == 0


class TestRefreshDueFlags:

    def test_flags_follow_the_date(self, seeded):
        assert seeded.refresh_due_flags("u1") == 4
        assert seeded.get_card("card_u1_today").is_due is True
        assert seeded.get_card("card_u1_tomorrow").is_due is False

    def test_idempotent(self, seeded):
        seeded.refresh_due_flags("u1")
        assert seeded.refresh_due_flags("u1") == 0

    def test_tomorrow_flips(self, seeded, clock):
        seeded.refresh_due_flags("u1")
        clock.advance(days=1)
        assert seeded.refresh_due_flags("u1") == 1
        assert seeded.get_card("card_u1_tomorrow").is_due is True
