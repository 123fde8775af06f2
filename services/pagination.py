"""
Cursor pagination over ``lastSeen``-ordered collections.

Listings are ordered newest first by ``lastSeen`` with the document id as a
secondary key. A page's cursor is the ISO ``lastSeen`` of its last item;
resuming returns items strictly older than the cursor, or, when the cursor
id is also supplied, items after ``(lastSeen, id)`` in that order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from errors import ValidationError
from infrastructure.store.protocol import DocumentSnapshot, DocumentStore
from shared.datetime_utils import parse_datetime, to_iso

DEFAULT_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 500
ORDER_FIELD = "lastSeen"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def clamp_limit(raw: Any) -> int:
    """Coerce a client-supplied page size into ``[1, MAX_PAGE_LIMIT]``.

    Parses a leading integer ("50", "50abc", 50.7); anything without one,
    and zero, falls back to DEFAULT_PAGE_LIMIT. Never raises.
    """
    if isinstance(raw, bool):
        value = 0
    elif isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        value = int(raw) if raw == raw and abs(raw) != float("inf") else 0
    else:
        match = _LEADING_INT_RE.match(str(raw)) if raw is not None else None
        value = int(match.group(1)) if match else 0
    if value == 0:
        value = DEFAULT_PAGE_LIMIT
    return min(max(value, 1), MAX_PAGE_LIMIT)


def parse_cursor(raw: Optional[str]) -> Optional[datetime]:
    """Parse a ``startAfter`` value; empty means "first page"."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    cursor = parse_datetime(raw)
    if cursor is None:
        raise ValidationError(
            "startAfter must be a valid ISO 8601 date", field="startAfter"
        )
    return cursor


@dataclass
class Page:
    items: list[DocumentSnapshot] = field(default_factory=list)
    next_cursor: Optional[str] = None
    next_cursor_id: Optional[str] = None


async def fetch_page(
    store: DocumentStore,
    collection: str,
    *,
    limit: int,
    cursor: Optional[datetime] = None,
    cursor_id: Optional[str] = None,
) -> Page:
    query = store.query(collection).order_by(ORDER_FIELD, descending=True).limit(limit)
    if cursor is not None:
        query = query.start_after(cursor, cursor_id or None)

    docs = await query.execute()

    # A short page is the last one
    if len(docs) < limit:
        return Page(items=docs)

    last = docs[-1]
    return Page(
        items=docs,
        next_cursor=to_iso(last.data.get(ORDER_FIELD)),
        next_cursor_id=last.id,
    )


def list_cache_key(prefix: str, limit: int, cursor: Optional[datetime], cursor_id: Optional[str]) -> str:
    return f"{prefix}:list:{limit}:{to_iso(cursor) or 'init'}:{cursor_id or ''}"
