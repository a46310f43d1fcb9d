from datetime import datetime, timezone

import mongomock
import pytest
from bson.objectid import ObjectId
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from database import Database, create_document, parse_object_id, serialize_doc
from errors import ValidationError
from reviews import ensure_indexes
from schemas import Review


class TestDatabaseLifecycle:
    def test_connects_once(self):
        calls = []
        database = Database(name="shop", client=mongomock.MongoClient(), initializers=[calls.append])

        first = database.connect()
        second = database.connect()

        assert first is second
        assert len(calls) == 1
        assert database.connected

    def test_unconfigured(self):
        database = Database()
        assert database.connect() is None
        assert not database.connected

    def test_failed_bootstrap_is_retried(self):
        attempts = []

        def flaky(db):
            attempts.append(db)
            if len(attempts) == 1:
                raise ServerSelectionTimeoutError("no servers")

        database = Database(name="shop", client=mongomock.MongoClient(), initializers=[flaky])

        assert database.connect() is None
        assert database.connect() is not None
        assert len(attempts) == 2

    def test_close(self):
        database = Database(name="shop", client=mongomock.MongoClient())
        database.connect()
        database.close()
        assert not database.connected


class TestDocuments:
    def test_create_document_stamps_times(self, db):
        review_id = create_document(db, "review", Review(user="u1", product="p1", rating=5))

        stored = db["review"].find_one({"_id": review_id})
        assert stored["rating"] == 5
        assert stored["createdAt"] is not None
        assert stored["updatedAt"] is not None

    def test_serialize_doc(self):
        oid = ObjectId()
        doc = {
            "_id": oid,
            "date": datetime(2026, 1, 2, 3, 4, 5),
            "items": [{"product": oid, "price": 10}],
        }
        assert serialize_doc(doc) == {
            "_id": str(oid),
            "date": "2026-01-02T03:04:05+00:00",
            "items": [{"product": str(oid), "price": 10}],
        }

    def test_serialize_aware_datetime(self):
        value = datetime(2026, 1, 2, tzinfo=timezone.utc)
        assert serialize_doc(value) == "2026-01-02T00:00:00+00:00"

    def test_parse_object_id(self):
        oid = ObjectId()
        assert parse_object_id(str(oid)) == oid
        assert parse_object_id(oid) is oid
        with pytest.raises(ValidationError):
            parse_object_id("xyz", "order id")
        with pytest.raises(ValidationError):
            parse_object_id(None)


class TestReviewIndexes:
    def test_existing_duplicates_do_not_block_connection(self):
        client = mongomock.MongoClient()
        client["shop"]["review"].insert_many([{"user": "u1", "product": "p1"}, {"user": "u1", "product": "p1"}])
        database = Database(name="shop", client=client, initializers=[ensure_indexes])

        assert database.connect() is not None
        assert database.connected

    def test_unique_index_created(self):
        database = Database(name="shop", client=mongomock.MongoClient(), initializers=[ensure_indexes])
        db = database.connect()

        db["review"].insert_one({"user": "u1", "product": "p1"})
        with pytest.raises(DuplicateKeyError):
            db["review"].insert_one({"user": "u1", "product": "p1"})
