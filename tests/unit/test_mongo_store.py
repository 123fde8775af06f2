"""Unit tests for the MongoDB document store adapter."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo import ASCENDING, DESCENDING, UpdateOne
from pymongo.errors import AutoReconnect, OperationFailure, PyMongoError

from errors import TransientStoreError
from infrastructure.store.mongo import (
    MongoDocumentStore,
    build_query_filter,
    build_sort,
    build_update,
)
from infrastructure.store.protocol import ArrayAppend, Increment, Query, ServerTimestamp

T0 = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)


def _query(**kwargs) -> Query:
    return Query(collection="c", executor=AsyncMock(), **kwargs)


def _fake_db():
    """Return a mock AsyncDatabase whose collections share one mock."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    collection.replace_one = AsyncMock()
    collection.bulk_write = AsyncMock()
    collection.create_index = AsyncMock()
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db, collection


def _transient_error() -> PyMongoError:
    return OperationFailure(
        "WriteConflict", code=112, details={"errorLabels": ["TransientTransactionError"]}
    )


# ── Pure translation helpers ──────────────────────────────────────────────────


class TestBuildUpdate:
    def test_sentinels_map_to_operators(self):
        update = build_update(
            {
                "scanCount": Increment(1),
                "history": ArrayAppend({"deviceId": "d1"}),
                "receivedAt": ServerTimestamp(),
                "accessedUrl": "https://x.test",
            }
        )
        assert update == {
            "$inc": {"scanCount": 1},
            "$push": {"history": {"deviceId": "d1"}},
            "$currentDate": {"receivedAt": {"$type": "date"}},
            "$set": {"accessedUrl": "https://x.test"},
        }

    def test_plain_values_only(self):
        assert build_update({"a": 1}) == {"$set": {"a": 1}}


class TestBuildQueryFilter:
    def test_no_cursor(self):
        assert build_query_filter(_query(order_field="lastSeen")) == {}

    def test_cursor_descending(self):
        q = _query(order_field="lastSeen", descending=True, cursor=T0)
        assert build_query_filter(q) == {"lastSeen": {"$lt": T0}}

    def test_cursor_ascending(self):
        q = _query(order_field="lastSeen", cursor=T0)
        assert build_query_filter(q) == {"lastSeen": {"$gt": T0}}

    def test_cursor_with_tie_breaker(self):
        q = _query(order_field="lastSeen", descending=True, cursor=T0, cursor_id="u5")
        assert build_query_filter(q) == {
            "$or": [
                {"lastSeen": {"$lt": T0}},
                {"lastSeen": T0, "_id": {"$lt": "u5"}},
            ]
        }


class TestBuildSort:
    def test_unordered(self):
        assert build_sort(_query()) == []

    def test_id_is_secondary_key(self):
        assert build_sort(_query(order_field="lastSeen", descending=True)) == [
            ("lastSeen", DESCENDING),
            ("_id", DESCENDING),
        ]
        assert build_sort(_query(order_field="lastSeen")) == [
            ("lastSeen", ASCENDING),
            ("_id", ASCENDING),
        ]


# ── MongoDocumentStore ────────────────────────────────────────────────────────


class TestMongoDocumentStore:
    async def test_get_missing(self):
        db, _ = _fake_db()
        snap = await MongoDocumentStore(db).get("uids", "a1b2")
        assert snap.exists is False
        assert snap.id == "a1b2"

    async def test_get_strips_id(self):
        db, collection = _fake_db()
        collection.find_one.return_value = {"_id": "a1b2", "scanCount": 3}
        snap = await MongoDocumentStore(db).get("uids", "a1b2")
        assert snap.exists is True
        assert snap.data == {"scanCount": 3}
        collection.find_one.assert_awaited_once_with({"_id": "a1b2"})

    async def test_set_merge_upserts_with_operators(self):
        db, collection = _fake_db()
        await MongoDocumentStore(db).set("stats_web", "u1", {"pageViews": Increment(1)}, merge=True)
        collection.update_one.assert_awaited_once_with(
            {"_id": "u1"}, {"$inc": {"pageViews": 1}}, upsert=True
        )

    async def test_set_without_merge_replaces(self):
        db, collection = _fake_db()
        await MongoDocumentStore(db).set("uids", "a1b2", {"scanCount": Increment(1), "x": 1})
        collection.replace_one.assert_awaited_once_with(
            {"_id": "a1b2"}, {"scanCount": 1, "x": 1}, upsert=True
        )

    async def test_set_many_is_one_unordered_bulk_write(self):
        db, collection = _fake_db()
        count = await MongoDocumentStore(db).set_many(
            "nfc_events",
            [("e1", {"uid": "u1", "receivedAt": ServerTimestamp()}), ("e2", {"uid": "u2"})],
        )
        assert count == 2
        collection.bulk_write.assert_awaited_once()
        ops = collection.bulk_write.call_args.args[0]
        assert collection.bulk_write.call_args.kwargs == {"ordered": False}
        assert ops[0] == UpdateOne(
            {"_id": "e1"},
            {"$set": {"uid": "u1"}, "$currentDate": {"receivedAt": {"$type": "date"}}},
            upsert=True,
        )

    async def test_set_many_empty(self):
        db, collection = _fake_db()
        assert await MongoDocumentStore(db).set_many("nfc_events", []) == 0
        collection.bulk_write.assert_not_awaited()

    async def test_connection_failure_is_transient(self):
        db, collection = _fake_db()
        collection.find_one.side_effect = AutoReconnect("gone")
        with pytest.raises(TransientStoreError):
            await MongoDocumentStore(db).get("uids", "a1b2")

    async def test_other_errors_propagate(self):
        db, collection = _fake_db()
        collection.update_one.side_effect = OperationFailure("bad update")
        with pytest.raises(OperationFailure):
            await MongoDocumentStore(db).set("uids", "a1b2", {"a": 1}, merge=True)

    async def test_run_transaction_uses_with_transaction(self):
        db, collection = _fake_db()
        collection.find_one.return_value = {"_id": "a1b2", "scanCount": 1}

        session = MagicMock()

        async def with_transaction(callback):
            return await callback(session)

        session.with_transaction = with_transaction
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        db.client.start_session.return_value = session

        async def body(tx):
            snap = await tx.get("uids", "a1b2")
            await tx.update("uids", "a1b2", {"scanCount": Increment(1)})
            return snap.data["scanCount"]

        assert await MongoDocumentStore(db).run_transaction(body) == 1
        collection.find_one.assert_awaited_once_with({"_id": "a1b2"}, session=session)
        collection.update_one.assert_awaited_once_with(
            {"_id": "a1b2"}, {"$inc": {"scanCount": 1}}, session=session
        )

    async def test_exhausted_transaction_is_transient(self):
        db, _ = _fake_db()
        session = MagicMock()
        session.with_transaction = AsyncMock(side_effect=_transient_error())
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        db.client.start_session.return_value = session

        with pytest.raises(TransientStoreError):
            await MongoDocumentStore(db).run_transaction(AsyncMock())

    async def test_query_builds_cursor(self):
        db, collection = _fake_db()
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[{"_id": "u1", "lastSeen": T0}])
        collection.find.return_value = cursor

        store = MongoDocumentStore(db)
        docs = await (
            store.query("stats_web").order_by("lastSeen", descending=True).limit(10).start_after(T0).execute()
        )

        collection.find.assert_called_once_with({"lastSeen": {"$lt": T0}})
        cursor.sort.assert_called_once_with([("lastSeen", DESCENDING), ("_id", DESCENDING)])
        cursor.limit.assert_called_once_with(10)
        assert docs[0].id == "u1"
        assert docs[0].data == {"lastSeen": T0}

    async def test_ensure_indexes(self):
        db, collection = _fake_db()
        await MongoDocumentStore(db).ensure_indexes(["uids", "stats_web"])
        assert collection.create_index.await_count == 2
