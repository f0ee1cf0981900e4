"""
Database - MongoDB document store for the SRS engine

Handles connection management, document (de)serialization and the atomic
multi-document commit used by every write path.

This module handles ONLY database I/O.
Scheduling logic lives in the algorithm module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from mistake_srs.config import SrsConfig
from mistake_srs.constants import (
    ATTEMPTS_COLLECTION,
    CARDS_COLLECTION,
    MISTAKES_COLLECTION,
    SESSIONS_COLLECTION,
)
from mistake_srs.errors import CommitFailure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Global connection pool (reused across requests)
_client: Optional[MongoClient] = None


# ---- Connection Management ----

def get_client(config: SrsConfig) -> MongoClient:
    """
    Get the shared MongoDB client.

    The client (and its connection pool) is created once per process.
    """
    global _client

    if _client is not None:
        return _client

    if not config.mongo_uri:
        raise ValueError("MONGO_URI not found in environment variables")

    _client = MongoClient(
        config.mongo_uri,
        maxPoolSize=10,
        minPoolSize=1,
        maxIdleTimeMS=60000,
        serverSelectionTimeoutMS=5000,
    )
    return _client


def get_database(config: SrsConfig) -> Database:
    """Database handle for the configured (or test) database."""
    return get_client(config)[config.database_name]


def init_db(db: Database) -> None:
    """
    Create the indexes used by the engine's queries.

    Safe to call multiple times - existing indexes are left alone.
    """
    cards = db[CARDS_COLLECTION]
    cards.create_index(
        [("user_id", ASCENDING), ("is_active", ASCENDING), ("next_review_date", ASCENDING)],
        name="user_active_next_review",
    )
    cards.create_index([("user_id", ASCENDING), ("question_id", ASCENDING)], name="user_question")
    cards.create_index(
        [("user_id", ASCENDING), ("is_active", ASCENDING), ("archived_at", DESCENDING)],
        name="user_active_archived_at",
    )

    attempts = db[ATTEMPTS_COLLECTION]
    attempts.create_index([("user_id", ASCENDING), ("attempted_at", ASCENDING)], name="user_attempted_at")
    attempts.create_index([("card_id", ASCENDING)], name="card")

    db[SESSIONS_COLLECTION].create_index(
        [("user_id", ASCENDING), ("started_at", DESCENDING)], name="user_started_at"
    )
    db[MISTAKES_COLLECTION].create_index([("user_id", ASCENDING)], name="user")


def reset_db(db: Database) -> None:
    """
    DANGEROUS: Drop every SRS collection and recreate the indexes.

    Only use this for testing or when you want to start fresh.
    All review history will be lost!
    """
    for name in (CARDS_COLLECTION, ATTEMPTS_COLLECTION, SESSIONS_COLLECTION, MISTAKES_COLLECTION):
        db.drop_collection(name)
    logger.warning("Dropped all SRS collections in %s", db.name)
    init_db(db)


# ---- Documents ----

def to_document(model: BaseModel) -> dict[str, Any]:
    """Serialize a model into a MongoDB document keyed by its id."""
    doc = model.model_dump(mode="json")
    doc["_id"] = doc["id"]
    return doc


def from_document(model_cls: type[ModelT], doc: Optional[dict]) -> Optional[ModelT]:
    """Parse a stored document back into a model (None passes through)."""
    if doc is None:
        return None
    data = dict(doc)
    data.pop("_id", None)
    return model_cls.model_validate(data)


# ---- Atomic writes ----

@dataclass
class WriteOp:
    kind: str  # "set" | "create" | "update"
    collection: str
    doc_id: str
    payload: dict[str, Any]


@dataclass
class WriteBatch:
    """
    Ordered document writes applied together by DocumentStore.commit().

    - set: full replace (insert if missing)
    - create: insert, fails if the document already exists
    - update: partial $set, fails if the document is missing
    """
    ops: list[WriteOp] = field(default_factory=list)

    def set(self, collection: str, model: BaseModel) -> None:
        doc = to_document(model)
        self.ops.append(WriteOp("set", collection, doc["_id"], doc))

    def create(self, collection: str, model: BaseModel) -> None:
        doc = to_document(model)
        self.ops.append(WriteOp("create", collection, doc["_id"], doc))

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.ops.append(WriteOp("update", collection, doc_id, dict(fields)))

    def __len__(self) -> int:
        return len(self.ops)


class DocumentStore:
    """
    Thin wrapper over a pymongo Database.

    commit() is all-or-nothing: inside a MongoDB transaction when
    use_transactions is on (replica sets / Atlas), otherwise by restoring
    snapshots of every touched document when any write fails.
    """

    def __init__(self, db: Database, use_transactions: bool = True):
        self.db = db
        self.use_transactions = use_transactions

    def collection(self, name: str) -> Collection:
        return self.db[name]

    def batch(self) -> WriteBatch:
        return WriteBatch()

    def commit(self, batch: WriteBatch) -> None:
        """
        Apply every write in the batch or none of them.

        Raises:
            CommitFailure: if the batch did not apply
        """
        if not batch.ops:
            return

        try:
            if self.use_transactions:
                with self.db.client.start_session() as session:
                    session.with_transaction(lambda s: self._apply(batch.ops, s))
            else:
                self._apply_with_rollback(batch.ops)
        except CommitFailure:
            raise
        except PyMongoError as exc:
            raise CommitFailure(f"Commit of {len(batch)} writes failed: {exc}") from exc

    def _apply(self, ops: list[WriteOp], session=None) -> None:
        for op in ops:
            self._apply_one(op, session)

    def _apply_one(self, op: WriteOp, session=None) -> None:
        coll = self.db[op.collection]
        if op.kind == "set":
            coll.replace_one({"_id": op.doc_id}, op.payload, upsert=True, session=session)
        elif op.kind == "create":
            coll.insert_one(op.payload, session=session)
        elif op.kind == "update":
            result = coll.update_one({"_id": op.doc_id}, {"$set": op.payload}, session=session)
            if result.matched_count == 0:
                raise CommitFailure(f"Cannot update missing document {op.collection}/{op.doc_id}")
        else:
            raise ValueError(f"Unknown write kind: {op.kind}")

    def _apply_with_rollback(self, ops: list[WriteOp]) -> None:
        snapshots = [self.db[op.collection].find_one({"_id": op.doc_id}) for op in ops]

        applied = 0
        try:
            for op in ops:
                self._apply_one(op)
                applied += 1
        except (PyMongoError, CommitFailure):
            logger.warning("Commit failed after %d/%d writes, rolling back", applied, len(ops))
            for op, before in reversed(list(zip(ops[:applied], snapshots[:applied]))):
                coll = self.db[op.collection]
                if before is None:
                    coll.delete_one({"_id": op.doc_id})
                else:
                    coll.replace_one({"_id": op.doc_id}, before, upsert=True)
            raise
