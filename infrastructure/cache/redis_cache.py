"""Redis-backed TTL cache.

Stores values as JSON (not pickle) so cache entries are debuggable and
shared safely between worker processes. Redis failures are logged and
treated as misses; the cache never fails a request.
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis

from shared.logging import get_logger

log = get_logger(__name__)


class RedisTTLCache:
    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        default_ttl_seconds: int = 60,
        namespace: str = "nfc",
    ) -> None:
        self._redis = redis_client
        self.default_ttl_seconds = default_ttl_seconds
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def has(self, key: str) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.exists(self._key(key)))
        except Exception as e:
            log.warning("redis_cache_has_error", key=key, error=str(e))
            return False

    async def get(self, key: str) -> Optional[Any]:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(self._key(key))
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            log.warning("redis_cache_get_error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        if self._redis is None:
            return
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        # Redis expiries are whole seconds; never round a short TTL down to 0
        ttl = max(1, int(ttl))
        try:
            await self._redis.setex(self._key(key), ttl, json.dumps(value, default=str))
        except Exception as e:
            log.error("redis_cache_set_error", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(self._key(key))
        except Exception as e:
            log.error("redis_cache_delete_error", key=key, error=str(e))
