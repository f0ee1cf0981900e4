"""
Tests for batched review sessions.
"""

import pytest
from pymongo.errors import NetworkTimeout

from mistake_srs import CommitFailure, ValidationError
from mistake_srs.constants import SESSIONS_COLLECTION


@pytest.fixture
def card_ids(engine, clock):
    result = engine.create_or_reuse_cards("u1", [{"question_id": q} for q in ("Q1", "Q2", "Q3")])
    clock.advance(days=1)
    return [card.id for card in result.cards]


class TestSubmitReviewSession:

    def test_all_reviews_succeed(self, engine, card_ids, db):
        result = engine.submit_review_session("u1", [
            {"cardId": card_ids[0], "wasCorrect": True, "timeSpent": 10},
            {"card_id": card_ids[1], "was_correct": False, "time_spent": 5.5},
            {"card_id": card_ids[2], "was_correct": True},
        ])

        session = result.session
        assert session.cards_reviewed == 3
        assert session.cards_correct == 2
        assert session.cards_failed == 1
        assert session.cards_errored == 0
        assert session.total_time_spent == 15.5
        assert session.session_type == "spaced_repetition"
        assert result.session_recorded
        assert all(r.ok for r in result.results)
        assert db[SESSIONS_COLLECTION].count_documents({"_id": session.id}) == 1

    def test_attempts_carry_session_id(self, engine, card_ids):
        result = engine.submit_review_session("u1", [{"card_id": card_ids[0], "was_correct": True}])
        attempt = result.results[0].outcome.attempt
        assert attempt.review_session_id == result.session.id
        assert engine.attempts.get(attempt.id).review_session_id == result.session.id

    def test_bad_entries_do_not_block_others(self, engine, card_ids):
        result = engine.submit_review_session("u1", [
            {"card_id": card_ids[0], "was_correct": True},
            {"card_id": "card_u1_missing", "was_correct": True},
            {"card_id": card_ids[1]},
            {"card_id": card_ids[2], "was_correct": False},
        ])

        session = result.session
        assert session.cards_reviewed == 4
        assert session.cards_errored == 2
        assert session.cards_correct + session.cards_failed == session.cards_reviewed - session.cards_errored
        assert [r.ok for r in result.results] == [True, False, False, True]
        assert result.results[1].error_type == "NotFound"
        assert result.results[1].card_id == "card_u1_missing"
        assert result.results[2].error_type == "ValidationError"
        assert engine.get_card(card_ids[2]).failed_attempts == 1

    def test_other_users_cards_rejected(self, engine, card_ids):
        result = engine.submit_review_session("u2", [{"card_id": card_ids[0], "was_correct": True}])
        assert result.session.cards_errored == 1
        assert engine.get_card(card_ids[0]).total_attempts == 0

    def test_custom_session_type(self, engine, card_ids):
        result = engine.submit_review_session("u1", [], session_type="daily_challenge")
        assert result.session.session_type == "daily_challenge"
        assert result.session.cards_reviewed == 0

    def test_session_write_failure_keeps_results(self, engine, card_ids, monkeypatch):
        def fail(session):
            raise CommitFailure("sessions collection unavailable")

        monkeypatch.setattr(engine.sessions, "record", fail)
        result = engine.submit_review_session("u1", [{"card_id": card_ids[0], "was_correct": True}])
        assert result.session_recorded is False
        assert result.results[0].ok
        assert engine.get_card(card_ids[0]).total_attempts == 1

    def test_user_id_required(self, engine):
        with pytest.raises(ValidationError):
            engine.submit_review_session("", [])

    def test_read_error_on_one_card_is_tallied(self, engine, card_ids, db, monkeypatch):
        get = engine.cards.get

        def flaky(card_id):
            if card_id == card_ids[1]:
                raise NetworkTimeout("timed out")
            return get(card_id)

        monkeypatch.setattr(engine.cards, "get", flaky)
        result = engine.submit_review_session("u1", [
            {"card_id": card_id, "was_correct": True} for card_id in card_ids
        ])

        assert [r.ok for r in result.results] == [True, False, True]
        assert result.results[1].error_type == "NetworkTimeout"
        assert result.session.cards_errored == 1
        assert result.session.cards_correct == 2
        assert db[SESSIONS_COLLECTION].count_documents({"_id": result.session.id}) == 1
