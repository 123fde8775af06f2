"""MongoDB implementation of the document store contract.

Mutator sentinels map onto MongoDB update operators:

    Increment(n)       -> $inc
    ArrayAppend(v)     -> $push
    ServerTimestamp()  -> $currentDate

Each of those operators is atomic per document, so merge writes from
concurrent requests never lose increments or appended elements.
Transactions use ``ClientSession.with_transaction``, which retries the
callback on ``TransientTransactionError`` and retries the commit on
``UnknownTransactionCommitResult``. They require a replica set or
sharded cluster.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional, Sequence, TypeVar

from pymongo import ASCENDING, DESCENDING, UpdateOne
from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import ConnectionFailure, PyMongoError

from errors import TransientStoreError
from infrastructure.store.protocol import (
    ArrayAppend,
    DocumentSnapshot,
    Increment,
    Query,
    ServerTimestamp,
    Transaction,
    apply_mutations,
)
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

_TRANSIENT_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


def build_update(data: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Translate a ``data`` dict with sentinels into a MongoDB update document."""
    update: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if isinstance(value, Increment):
            update.setdefault("$inc", {})[key] = value.amount
        elif isinstance(value, ArrayAppend):
            update.setdefault("$push", {})[key] = value.value
        elif isinstance(value, ServerTimestamp):
            update.setdefault("$currentDate", {})[key] = {"$type": "date"}
        else:
            update.setdefault("$set", {})[key] = value
    return update


def build_query_filter(query: Query) -> dict[str, Any]:
    if query.cursor is None or query.order_field is None:
        return {}
    op = "$lt" if query.descending else "$gt"
    if query.cursor_id is None:
        return {query.order_field: {op: query.cursor}}
    return {
        "$or": [
            {query.order_field: {op: query.cursor}},
            {query.order_field: query.cursor, "_id": {op: query.cursor_id}},
        ]
    }


def build_sort(query: Query) -> list[tuple[str, int]]:
    if query.order_field is None:
        return []
    direction = DESCENDING if query.descending else ASCENDING
    return [(query.order_field, direction), ("_id", direction)]


def _snapshot(doc_id: str, doc: Optional[Mapping[str, Any]]) -> DocumentSnapshot:
    if doc is None:
        return DocumentSnapshot(id=doc_id, exists=False)
    data = {k: v for k, v in doc.items() if k != "_id"}
    return DocumentSnapshot(id=str(doc.get("_id", doc_id)), exists=True, data=data)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Surface exhausted retries and lost connections as TransientStoreError."""
    try:
        yield
    except ConnectionFailure as exc:
        log.error("store_connection_failure", operation=operation, error=str(exc))
        raise TransientStoreError(f"Document store unavailable during {operation}") from exc
    except PyMongoError as exc:
        if any(exc.has_error_label(label) for label in _TRANSIENT_LABELS):
            log.error("store_transaction_exhausted", operation=operation, error=str(exc))
            raise TransientStoreError(
                f"Conflicting writes could not be resolved during {operation}"
            ) from exc
        raise


class MongoTransaction:
    """Transaction handle bound to a session inside ``with_transaction``."""

    def __init__(self, db: AsyncDatabase, session: AsyncClientSession) -> None:
        self._db = db
        self._session = session

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        doc = await self._db[collection].find_one({"_id": doc_id}, session=self._session)
        return _snapshot(doc_id, doc)

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        document = apply_mutations(None, data, now=datetime.now(timezone.utc))
        await self._db[collection].replace_one(
            {"_id": doc_id}, document, upsert=True, session=self._session
        )

    async def update(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        await self._db[collection].update_one(
            {"_id": doc_id}, build_update(data), session=self._session
        )


class MongoDocumentStore:
    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        with _store_errors("get"):
            doc = await self._db[collection].find_one({"_id": doc_id})
        return _snapshot(doc_id, doc)

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        with _store_errors("set"):
            if merge:
                await self._db[collection].update_one(
                    {"_id": doc_id}, build_update(data), upsert=True
                )
            else:
                document = apply_mutations(None, data, now=datetime.now(timezone.utc))
                await self._db[collection].replace_one(
                    {"_id": doc_id}, document, upsert=True
                )

    async def set_many(
        self,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
        *,
        merge: bool = True,
    ) -> int:
        """Write all *documents* in one unordered bulk request.

        Each document write is atomic; the batch as a whole is not.
        """
        if not documents:
            return 0
        now = datetime.now(timezone.utc)
        ops = []
        for doc_id, data in documents:
            if merge:
                update = build_update(data)
            else:
                update = {"$set": apply_mutations(None, data, now=now)}
            ops.append(UpdateOne({"_id": doc_id}, update, upsert=True))
        with _store_errors("set_many"):
            await self._db[collection].bulk_write(ops, ordered=False)
        return len(ops)

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        async def callback(session: AsyncClientSession) -> T:
            return await fn(MongoTransaction(self._db, session))

        with _store_errors("transaction"):
            async with self._db.client.start_session() as session:
                return await session.with_transaction(callback)

    def query(self, collection: str) -> Query:
        return Query(collection=collection, executor=self._execute)

    async def _execute(self, query: Query) -> list[DocumentSnapshot]:
        cursor = self._db[query.collection].find(build_query_filter(query))
        sort = build_sort(query)
        if sort:
            cursor = cursor.sort(sort)
        if query.limit_count is not None:
            cursor = cursor.limit(query.limit_count)
        with _store_errors("query"):
            docs = await cursor.to_list(length=None)
        return [_snapshot(str(doc["_id"]), doc) for doc in docs]

    async def ensure_indexes(self, collections: Sequence[str]) -> None:
        """Create the (lastSeen desc, _id desc) index used by paginated listings."""
        for name in collections:
            await self._db[name].create_index(
                [("lastSeen", DESCENDING), ("_id", DESCENDING)],
                name="lastSeen_desc_id_desc",
            )
        log.info("indexes_ensured", collections=list(collections))
