"""
Tag registry.

Owns the create-or-increment transaction for a single tag identifier and the
read paths over the tag collection.

save() runs inside a store transaction. The body re-reads the tag on every
attempt and only uses atomic mutators on the update path, so a store-level
retry after a write conflict never double-counts a scan or duplicates a
history entry. Scans of different tags touch different documents and never
contend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from errors import NotFoundError, ValidationError
from infrastructure.cache.protocol import TTLCache
from infrastructure.store.protocol import (
    ArrayAppend,
    DocumentStore,
    Increment,
    Transaction,
)
from schemas.models.tag import TagDoc
from services.pagination import clamp_limit, fetch_page, list_cache_key, parse_cursor
from shared.datetime_utils import utc_now
from shared.logging import get_logger, should_sample

log = get_logger(__name__)


class TagService:
    def __init__(
        self,
        store: DocumentStore,
        collection: str = "uids",
        *,
        tag_ttl_seconds: int = 120,
        list_ttl_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._collection = collection
        self._tag_ttl = tag_ttl_seconds
        self._list_ttl = list_ttl_seconds
        self._clock = clock

    async def save(
        self,
        uid: str,
        url: str,
        device_id: str,
        scan_type: str,
        location: Optional[Any] = None,
    ) -> dict:
        """Record one scan of tag *uid*. Returns ``{"uid": uid}``."""
        required = {"uid": uid, "url": url, "deviceId": device_id, "scanType": scan_type}
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", field=missing[0]
            )

        now = self._clock()
        entry = {
            "timestamp": now,
            "deviceId": device_id,
            "scanType": scan_type,
            "location": location,
        }

        async def record_scan(tx: Transaction) -> bool:
            snapshot = await tx.get(self._collection, uid)
            if not snapshot.exists:
                await tx.set(
                    self._collection,
                    uid,
                    {
                        "uid": uid,
                        "accessedUrl": url,
                        "scanCount": 1,
                        "firstSeen": now,
                        "lastSeen": now,
                        "history": [entry],
                        "lastDevice": device_id,
                        "lastScanType": scan_type,
                        "lastLocation": location,
                    },
                )
                return True

            await tx.update(
                self._collection,
                uid,
                {
                    "scanCount": Increment(1),
                    "accessedUrl": url,
                    "lastSeen": now,
                    "history": ArrayAppend(entry),
                    "lastDevice": device_id,
                    "lastScanType": scan_type,
                    "lastLocation": location,
                },
            )
            return False

        created = await self._store.run_transaction(record_scan)
        log.info("tag_scan_saved", uid=uid, scan_type=scan_type, created=created)
        return {"uid": uid}

    async def get_tag(self, uid: str, cache: Optional[TTLCache] = None) -> dict:
        tag, _ = await self.lookup_tag(uid, cache)
        return tag

    async def lookup_tag(
        self, uid: str, cache: Optional[TTLCache] = None
    ) -> tuple[dict, bool]:
        """Read a tag; the flag is True when the record came from *cache*."""
        if not uid:
            raise ValidationError("uid is required", field="uid")

        cache_key = f"tag:{uid}"
        if cache is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                if should_sample("cache_operation"):
                    log.debug("cache_hit", key=cache_key)
                return cached, True

        snapshot = await self._store.get(self._collection, uid)
        tag = TagDoc.from_store(snapshot)
        if tag is None:
            raise NotFoundError("Tag not found", field="uid")

        result = tag.to_public()
        if cache is not None:
            await cache.set(cache_key, result, self._tag_ttl)
        return result, False

    async def list_tags(
        self,
        limit: Any = None,
        start_after: Optional[str] = None,
        start_after_id: Optional[str] = None,
        cache: Optional[TTLCache] = None,
    ) -> dict:
        limit = clamp_limit(limit)
        cursor = parse_cursor(start_after)
        cursor_id = start_after_id if cursor is not None else None

        cache_key = list_cache_key("tags", limit, cursor, cursor_id)
        if cache is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                return cached

        page = await fetch_page(
            self._store, self._collection, limit=limit, cursor=cursor, cursor_id=cursor_id
        )
        response = {
            "data": [TagDoc.from_store(doc).to_public() for doc in page.items],
            "nextCursor": page.next_cursor,
            "nextCursorId": page.next_cursor_id,
        }
        if cache is not None:
            await cache.set(cache_key, response, self._list_ttl)
        return response
