"""
Tests for the document store and its all-or-nothing commit.
"""

import pytest

from mistake_srs import CommitFailure, SrsConfig, init_db
from mistake_srs import database
from mistake_srs.constants import ATTEMPTS_COLLECTION, CARDS_COLLECTION
from mistake_srs.database import from_document, to_document
from mistake_srs.schemas import Card


class TestDocuments:

    def test_to_document_uses_id_as_key(self, make_card):
        doc = to_document(make_card())
        assert doc["_id"] == "card_u1_q1"
        assert doc["status"] == "new"
        assert doc["created_at"] == "2026-01-01T04:00:00.000+00:00"

    def test_from_document(self, make_card):
        card = make_card(topic="algebra")
        assert from_document(Card, to_document(card)) == card
        assert from_document(Card, None) is None


class TestCommit:

    def test_empty_batch_is_noop(self, store):
        store.commit(store.batch())

    def test_applies_every_write(self, store, make_card):
        batch = store.batch()
        batch.set(CARDS_COLLECTION, make_card("q1"))
        batch.set(CARDS_COLLECTION, make_card("q2"))
        store.commit(batch)
        assert store.collection(CARDS_COLLECTION).count_documents({}) == 2

    def test_duplicate_create_rolls_back(self, store, make_card):
        store.collection(ATTEMPTS_COLLECTION).insert_one({"_id": "card_u1_taken", "id": "card_u1_taken"})

        batch = store.batch()
        batch.set(CARDS_COLLECTION, make_card("q1"))
        batch.create(ATTEMPTS_COLLECTION, make_card("taken"))

        with pytest.raises(CommitFailure):
            store.commit(batch)
        assert store.collection(CARDS_COLLECTION).find_one({"_id": "card_u1_q1"}) is None

    def test_rollback_restores_previous_version(self, store, make_card):
        original = make_card("q1", interval=3)
        batch = store.batch()
        batch.set(CARDS_COLLECTION, original)
        store.commit(batch)

        batch = store.batch()
        batch.set(CARDS_COLLECTION, make_card("q1", interval=8))
        batch.update(CARDS_COLLECTION, "card_u1_missing", {"is_due": True})

        with pytest.raises(CommitFailure):
            store.commit(batch)
        stored = from_document(Card, store.collection(CARDS_COLLECTION).find_one({"_id": "card_u1_q1"}))
        assert stored.interval == 3

    def test_update_missing_document_fails(self, store):
        batch = store.batch()
        batch.update(CARDS_COLLECTION, "nope", {"is_due": True})
        with pytest.raises(CommitFailure):
            store.commit(batch)


class TestConnection:

    def test_missing_uri_raises(self, monkeypatch):
        monkeypatch.setattr(database, "_client", None)
        with pytest.raises(ValueError, match="MONGO_URI"):
            database.get_client(SrsConfig(mongo_uri=None))

    def test_init_db_is_idempotent(self, db):
        init_db(db)
        names = {index["name"] for index in db[CARDS_COLLECTION].list_indexes()}
        assert "user_active_next_review" in names
        assert "user_question" in names
