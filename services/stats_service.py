"""
Read access to per-subject engagement statistics.

Both reads go through the injected TTL cache first. A cached record may lag
the store by up to ``stats_ttl_seconds``; the statistics are derived data
and that window is accepted.
"""

from __future__ import annotations

from typing import Any, Optional

from errors import NotFoundError, ValidationError
from infrastructure.cache.protocol import TTLCache
from infrastructure.store.protocol import DocumentStore
from schemas.models.stats import StatsDoc
from services.pagination import clamp_limit, fetch_page, list_cache_key, parse_cursor
from shared.logging import get_logger, should_sample

log = get_logger(__name__)


class StatsService:
    def __init__(
        self,
        store: DocumentStore,
        collection: str = "stats_web",
        *,
        stats_ttl_seconds: int = 60,
        list_ttl_seconds: int = 60,
    ) -> None:
        self._store = store
        self._collection = collection
        self._stats_ttl = stats_ttl_seconds
        self._list_ttl = list_ttl_seconds

    async def get_stats(self, uid: str, cache: Optional[TTLCache] = None) -> dict:
        if not uid:
            raise ValidationError("uid is required", field="uid")

        cache_key = f"stats:uid:{uid}"
        if cache is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                return cached

        snapshot = await self._store.get(self._collection, uid)
        stats = StatsDoc.from_store(snapshot)
        if stats is None:
            raise NotFoundError("Statistics not found for uid", field="uid")

        result = stats.to_public()
        if should_sample("stats_query"):
            log.info("stats_query", uid=uid, page_views=stats.page_views, total_clicks=stats.total_clicks)
        if cache is not None:
            await cache.set(cache_key, result, self._stats_ttl)
        return result

    async def list_stats(
        self,
        limit: Any = None,
        start_after: Optional[str] = None,
        start_after_id: Optional[str] = None,
        cache: Optional[TTLCache] = None,
    ) -> dict:
        limit = clamp_limit(limit)
        cursor = parse_cursor(start_after)
        cursor_id = start_after_id if cursor is not None else None

        cache_key = list_cache_key("stats", limit, cursor, cursor_id)
        if cache is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                return cached

        page = await fetch_page(
            self._store, self._collection, limit=limit, cursor=cursor, cursor_id=cursor_id
        )
        response = {
            "data": [StatsDoc.from_store(doc).to_public() for doc in page.items],
            "nextCursor": page.next_cursor,
            "nextCursorId": page.next_cursor_id,
        }
        if cache is not None:
            await cache.set(cache_key, response, self._list_ttl)
        return response
