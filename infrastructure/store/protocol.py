"""
Document store contract.

Services talk to persistence only through ``DocumentStore``. Field values in
``data`` dicts may be plain values or one of the mutator sentinels below;
each adapter translates the sentinels into its native atomic operators so
that concurrent writers never lose an increment or an appended element.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Increment:
    """Atomically add ``amount`` to a numeric field (missing counts as 0)."""

    amount: int = 1


@dataclass(frozen=True)
class ArrayAppend:
    """Atomically append ``value`` to an array field (missing counts as [])."""

    value: Any


@dataclass(frozen=True)
class ServerTimestamp:
    """Resolved to the store's current time when the write is applied."""


def apply_mutations(
    existing: Optional[Mapping[str, Any]],
    data: Mapping[str, Any],
    *,
    now: datetime,
) -> dict[str, Any]:
    """Return *existing* with *data* merged in and every sentinel resolved."""
    result = dict(existing or {})
    for key, value in data.items():
        if isinstance(value, Increment):
            result[key] = (result.get(key) or 0) + value.amount
        elif isinstance(value, ArrayAppend):
            result[key] = list(result.get(key) or []) + [value.value]
        elif isinstance(value, ServerTimestamp):
            result[key] = now
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    exists: bool
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Query:
    """Immutable ordered range query; every builder call returns a copy.

    ``start_after`` positions the query strictly after ``cursor`` in the
    chosen order. When ``cursor_id`` is also given, documents whose order
    field equals ``cursor`` are included only if their id sorts after
    ``cursor_id`` in the same direction, which makes ties resumable.
    """

    collection: str
    executor: Callable[["Query"], Awaitable[list[DocumentSnapshot]]] = field(
        repr=False, compare=False
    )
    order_field: Optional[str] = None
    descending: bool = False
    limit_count: Optional[int] = None
    cursor: Any = None
    cursor_id: Optional[str] = None

    def order_by(self, field_name: str, *, descending: bool = False) -> "Query":
        return replace(self, order_field=field_name, descending=descending)

    def limit(self, count: int) -> "Query":
        return replace(self, limit_count=count)

    def start_after(self, cursor: Any, cursor_id: Optional[str] = None) -> "Query":
        return replace(self, cursor=cursor, cursor_id=cursor_id)

    async def execute(self) -> list[DocumentSnapshot]:
        return await self.executor(self)


class Transaction(Protocol):
    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None: ...

    async def update(
        self, collection: str, doc_id: str, data: Mapping[str, Any]
    ) -> None: ...


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None: ...

    async def set_many(
        self,
        collection: str,
        documents: Sequence[tuple[str, Mapping[str, Any]]],
        *,
        merge: bool = True,
    ) -> int: ...

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T: ...

    def query(self, collection: str) -> Query: ...
